"""
BeamNG translator.

Writes one jbeam file with two parts: the engine (mainEngine and, when
present, turbocharger) and the drivetrain (gearbox, vehicleController
shift logic and one differential per driven axle plus the centre
differential for AWD).
"""

import logging
from typing import Any, Dict, List

import numpy as np

from enginecrane.crate.codec import slugify
from enginecrane.errors import WarningKind
from enginecrane.model.drivetrain import Differential, TractionLayout
from enginecrane.model.unit import CanonicalEngineUnit
from enginecrane.translators import derivations
from enginecrane.translators.base import ConfigFile, TranslationContext, Translator
from enginecrane.translators.jbeam import torque_table, write_jbeam
from enginecrane.units.quantity import bar_to_psi

logger = logging.getLogger(__name__)

AUTHORS = "enginecrane"

LIMITS = {
    "idleRPM": (300.0, 3000.0),
    "maxRPM": (1000.0, 25000.0),
    "inertia": (0.01, 2.0),
    "friction": (0.0, 500.0),
    "dynamicFriction": (0.0, 1.0),
    "engineBrakeTorque": (0.0, 1000.0),
    "maxTorqueRating": (0.0, 10000.0),
    "turboInertia": (0.1, 20.0),
    "pressurePSI": (0.0, 75.0),
    "gearRatio": (0.05, 20.0),
    "gearboxInertia": (0.005, 0.1),
    "shiftTime": (0.02, 0.5),
    "lock": (0.0, 1.0),
    "lsdPreload": (0.0, 5000.0),
    "diffTorqueSplit": (0.0, 1.0),
    "revMatchThrottle": (0.0, 1.0),
}


def _diff_type(diff) -> str:
    if diff.power_lock == 0.0 and diff.coast_lock == 0.0:
        return "open"
    if diff.power_lock == 1.0 and diff.coast_lock == 1.0:
        return "locked"
    return "lsd"


class BeamNGTranslator(Translator):
    """Canonical unit -> BeamNG jbeam engine + drivetrain parts."""

    target = "beamng"

    def _build(self, unit: CanonicalEngineUnit, ctx: TranslationContext) -> List[ConfigFile]:
        slug = slugify(unit.name).replace("-", "_")
        parts = {
            f"{slug}_engine": self._engine_part(unit, slug, ctx),
            f"{slug}_drivetrain": self._drivetrain_part(unit, slug, ctx),
        }
        return [ConfigFile(f"{slug}_engine.jbeam", write_jbeam(parts).encode("utf-8"))]

    @staticmethod
    def _information(unit: CanonicalEngineUnit, label: str) -> Dict[str, Any]:
        return {"authors": AUTHORS, "name": f"{unit.name} {label}", "value": 0}

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    def _engine_part(self, unit: CanonicalEngineUnit, slug: str, ctx: TranslationContext) -> Dict[str, Any]:
        engine = unit.engine
        curve = ctx.resampled_curve(engine.torque_curve)

        friction = engine.friction
        if friction is not None:
            static = friction.static_torque
            dynamic = friction.dynamic_friction
            brake = friction.engine_brake_torque
        else:
            coast, _ = derivations.coast_torque(engine)
            static, dynamic = 0.0, 0.0
            brake = ctx.defaulted("mainEngine", "engineBrakeTorque", coast, "0.15 x peak torque")

        def clamp(field: str, value: float) -> float:
            return ctx.clamp("mainEngine", field, value, *LIMITS[field])

        torque = derivations.boost_free_torque(engine, curve.speeds, curve.torques)
        max_rpm = round(clamp("maxRPM", engine.redline))
        main_engine = {
            "torque": torque_table([(float(rpm), float(t)) for rpm, t in zip(curve.speeds, torque)]),
            "idleRPM": round(clamp("idleRPM", engine.idle_speed)),
            "maxRPM": max_rpm,
            "revLimiterRPM": max_rpm,
            "inertia": round(clamp("inertia", engine.inertia), 4),
            "friction": round(clamp("friction", static), 2),
            "dynamicFriction": round(clamp("dynamicFriction", dynamic), 5),
            "engineBrakeTorque": round(clamp("engineBrakeTorque", brake), 1),
            "maxTorqueRating": round(clamp("maxTorqueRating", unit.drivetrain.clutch.max_torque)),
        }
        part = {
            "information": self._information(unit, "Engine"),
            "slotType": f"{slug}_engine",
            "mainEngine": main_engine,
        }
        if engine.turbo is not None:
            part["turbocharger"] = self._turbocharger(unit, ctx)
        return part

    def _turbocharger(self, unit: CanonicalEngineUnit, ctx: TranslationContext) -> Dict[str, Any]:
        turbo = unit.engine.turbo
        stage = turbo.stages[0]
        if len(turbo.stages) > 1:
            ctx.warn(
                "turbocharger", "stages",
                f"{len(turbo.stages)} stages merged into one turbocharger using stage 0 timing",
                WarningKind.ADJUSTED,
            )

        if turbo.boost_curve is not None:
            points = turbo.boost_curve.points()
        else:
            # linear spool from 0 rpm to max boost at the reference speed
            points = [(0.0, 0.0), (stage.reference_rpm, stage.max_boost)]
        psi = ctx.clamp_series(
            "turbocharger", "pressurePSI",
            np.array([bar_to_psi(bar) for _, bar in points]), *LIMITS["pressurePSI"],
        )
        table: List[list] = [["rpm", "psi"]]
        table.extend([round(rpm, 1), round(float(p), 2)] for (rpm, _), p in zip(points, psi))

        wastegate = ctx.clamp("turbocharger", "wastegateStart", bar_to_psi(stage.wastegate), *LIMITS["pressurePSI"])
        inertia = ctx.clamp("turbocharger", "inertia", derivations.turbo_inertia(stage), *LIMITS["turboInertia"])
        return {
            "pressurePSI": table,
            "wastegateStart": round(wastegate, 2),
            "inertia": round(inertia, 3),
        }

    # ------------------------------------------------------------------
    # Drivetrain
    # ------------------------------------------------------------------

    def _drivetrain_part(self, unit: CanonicalEngineUnit, slug: str, ctx: TranslationContext) -> Dict[str, Any]:
        engine = unit.engine
        drivetrain = unit.drivetrain
        gearbox = drivetrain.gearbox

        def ratio(field: str, value: float) -> float:
            return round(ctx.clamp("gearbox", field, value, *LIMITS["gearRatio"]), 4)

        ratios = [-ratio("gear_r", gearbox.reverse_ratio), 0]
        ratios.extend(ratio(f"gear_{i}", r) for i, r in enumerate(gearbox.forward_ratios, start=1))

        up_rpm, down_rpm = derivations.auto_shift_points(engine)
        launch_low, launch_high = derivations.autoclutch_window(engine)
        blip = ctx.clamp(
            "vehicleController", "revMatchThrottle",
            derivations.autoblip_level(engine, drivetrain), *LIMITS["revMatchThrottle"],
        )
        part: Dict[str, Any] = {
            "information": self._information(unit, "Drivetrain"),
            "slotType": f"{slug}_drivetrain",
            "gearbox": {
                "gearRatios": ratios,
                "gearboxInertia": round(ctx.clamp(
                    "gearbox", "gearboxInertia", derivations.gearbox_inertia(engine), *LIMITS["gearboxInertia"]
                ), 4),
                "shiftTime": round(ctx.clamp(
                    "gearbox", "shiftTime", derivations.upshift_time(engine, drivetrain), *LIMITS["shiftTime"]
                ), 3),
            },
            "vehicleController": {
                "highShiftUpRPM": round(up_rpm),
                "lowShiftDownRPM": round(down_rpm),
                "revMatchThrottle": round(blip, 2),
                "clutchLaunchStartRPM": round(launch_low),
                "clutchLaunchTargetRPM": round(launch_high),
            },
        }

        layout = drivetrain.layout
        final = round(ctx.clamp("gearbox", "finalDrive", gearbox.final_drive, *LIMITS["gearRatio"]), 4)
        if layout is TractionLayout.RWD:
            part["differential_R"] = self._differential("differential_R", drivetrain.differential, final, ctx)
        elif layout is TractionLayout.FWD:
            part["differential_F"] = self._differential("differential_F", drivetrain.differential, final, ctx)
        else:
            awd = drivetrain.awd
            part["differential_F"] = self._differential("differential_F", awd.front, final, ctx)
            part["differential_R"] = self._differential("differential_R", awd.rear, final, ctx)
            part["differential_center"] = self._centre_differential(unit, ctx)
        return part

    @staticmethod
    def _differential(name: str, diff: Differential, final_drive: float, ctx: TranslationContext) -> Dict[str, Any]:
        return {
            "diffType": _diff_type(diff),
            "lsdLockCoef": round(ctx.clamp(name, "lsdLockCoef", diff.power_lock, *LIMITS["lock"]), 3),
            "lsdRevLockCoef": round(ctx.clamp(name, "lsdRevLockCoef", diff.coast_lock, *LIMITS["lock"]), 3),
            "lsdPreload": round(ctx.clamp(name, "lsdPreload", diff.preload, *LIMITS["lsdPreload"]), 1),
            "finalDrive": final_drive,
        }

    @staticmethod
    def _centre_differential(unit: CanonicalEngineUnit, ctx: TranslationContext) -> Dict[str, Any]:
        name = "differential_center"
        awd = unit.drivetrain.awd
        centre = awd.centre

        preload = centre.preload
        if preload is None:
            preload = ctx.defaulted(
                name, "lsdPreload",
                derivations.centre_preload(unit.engine, unit.drivetrain),
                "0.05 x peak torque x gear 1 x final drive",
            )
        centre_diff = {
            "diffType": _diff_type(centre),
            "diffTorqueSplit": round(
                ctx.clamp(name, "diffTorqueSplit", awd.rear_share, *LIMITS["diffTorqueSplit"]), 3
            ),
            "lsdLockCoef": round(ctx.clamp(name, "lsdLockCoef", centre.power_lock, *LIMITS["lock"]), 3),
            "lsdRevLockCoef": round(ctx.clamp(name, "lsdRevLockCoef", centre.coast_lock, *LIMITS["lock"]), 3),
            "lsdPreload": round(ctx.clamp(name, "lsdPreload", preload, *LIMITS["lsdPreload"]), 1),
        }
        if centre.uses_ramp:
            centre_diff["viscousTorque"] = round(
                ctx.clamp(name, "viscousTorque", centre.ramp_torque, *LIMITS["lsdPreload"]), 1
            )
        return centre_diff
