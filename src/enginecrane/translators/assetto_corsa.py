"""
Assetto Corsa translator.

Produces, in order:
- engine.ini: limits, inertia, coast reference, turbo stages, damage
- power.lut: ``rpm|torque`` wheel torque table (boost removed for turbo
  engines, the game re-applies it from the turbo sections)
- ctrl_turbo0.ini: rpm-indexed boost controller (turbo with boost curve)
- drivetrain.ini: traction, gears, differentials, gearbox, clutch,
  autoclutch, autoblip, auto shifter, downshift protection
- car.ini: ``[FUEL] CONSUMPTION`` fragment (engines with fuel economy)
- ui_car.json: power and torque curves plus headline specs for the
  car's ``ui/`` folder
"""

import json
import logging
import math
from typing import Any, Dict, List

from enginecrane.model.unit import CanonicalEngineUnit
from enginecrane.translators import derivations
from enginecrane.translators.base import ConfigFile, TranslationContext, Translator
from enginecrane.translators.ini import IniDocument, inline_lut, write_lut
from enginecrane.units.curve import TorqueCurve
from enginecrane.units.quantity import kw_to_bhp

logger = logging.getLogger(__name__)

ENGINE_INI = "engine.ini"
POWER_LUT = "power.lut"
TURBO_CTRL_INI = "ctrl_turbo0.ini"
DRIVETRAIN_INI = "drivetrain.ini"
CAR_INI = "car.ini"
UI_CAR_JSON = "ui_car.json"

UI_BLANK = "---"

# Legal ranges accepted by the game's data loader
LIMITS = {
    "CHANGE_UP_TIME": (20.0, 500.0),        # ms
    "CHANGE_DN_TIME": (20.0, 700.0),        # ms
    "AUTO_CUTOFF_TIME": (0.0, 500.0),       # ms
    "GEARBOX_INERTIA": (0.005, 0.1),
    "ENGINE_INERTIA": (0.01, 2.0),
    "LIMITER": (1000.0, 25000.0),
    "MINIMUM": (300.0, 5000.0),
    "CLUTCH_TORQUE": (50.0, 5000.0),
    "PRELOAD": (0.0, 1000.0),
    "LOCK": (0.0, 1.0),
    "LEVEL": (0.0, 1.0),
    "LAG": (0.0, 0.9999),
    "BOOST": (0.0, 5.0),
    "OVERREV": (0.0, 1000.0),
    "RAMP_TORQUE": (0.0, 2000.0),
    "CENTRE_MAX_TORQUE": (0.0, 5000.0),
    "FRONT_SHARE": (0.0, 100.0),            # percent
    "GEAR_RATIO": (0.05, 20.0),
    "FINAL": (0.5, 20.0),
    "FUEL_FLOW": (0.0, 1000.0),             # kg/h
}


class AssettoCorsaTranslator(Translator):
    """Canonical unit -> Assetto Corsa ``data/`` files."""

    target = "assetto_corsa"

    def _build(self, unit: CanonicalEngineUnit, ctx: TranslationContext) -> List[ConfigFile]:
        curve = ctx.resampled_curve(unit.engine.torque_curve)
        files = [
            ConfigFile(ENGINE_INI, self._engine_ini(unit, curve, ctx).to_bytes()),
            ConfigFile(POWER_LUT, self._power_lut(unit, curve, ctx).encode("utf-8")),
        ]
        turbo = unit.engine.turbo
        if turbo is not None and turbo.boost_curve is not None:
            files.append(ConfigFile(TURBO_CTRL_INI, self._turbo_controller(unit, ctx).to_bytes()))
        files.append(ConfigFile(DRIVETRAIN_INI, self._drivetrain_ini(unit, ctx).to_bytes()))
        if unit.engine.fuel is not None:
            files.append(ConfigFile(CAR_INI, self._car_ini(unit).to_bytes()))
        files.append(ConfigFile(UI_CAR_JSON, self._ui_car(unit, curve, ctx).encode("utf-8")))
        return files

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    def _power_lut(self, unit: CanonicalEngineUnit, curve: TorqueCurve, ctx: TranslationContext) -> str:
        """Wheel torque per rpm: T · efficiency / (1 + max(0, boost))."""
        efficiency = derivations.drivetrain_efficiency(unit.drivetrain.layout)
        torque = derivations.boost_free_torque(unit.engine, curve.speeds, curve.torques) * efficiency
        return write_lut(zip(curve.speeds, torque), decimals=1)

    def _engine_ini(self, unit: CanonicalEngineUnit, curve: TorqueCurve, ctx: TranslationContext) -> IniDocument:
        engine = unit.engine
        doc = IniDocument()

        doc.section("HEADER").set("VERSION", 1)
        doc.section("HEADER").set("POWER_CURVE", POWER_LUT)
        doc.section("HEADER").set("COAST_CURVE", "FROM_COAST_REF")

        limiter = ctx.clamp("ENGINE_DATA", "LIMITER", engine.redline, *LIMITS["LIMITER"])
        minimum = ctx.clamp(
            "ENGINE_DATA", "MINIMUM",
            max(engine.idle_speed, engine.torque_curve.min_speed), *LIMITS["MINIMUM"],
        )
        data = doc.section("ENGINE_DATA")
        data.set("ALTITUDE_SENSITIVITY", 0.10, 2)
        data.set("INERTIA", ctx.clamp("ENGINE_DATA", "INERTIA", engine.inertia, *LIMITS["ENGINE_INERTIA"]), 3)
        data.set("LIMITER", round(limiter))
        data.set("LIMITER_HZ", 30)
        data.set("MINIMUM", round(minimum))

        coast, measured = derivations.coast_torque(engine)
        if not measured:
            ctx.defaulted("COAST_REF", "TORQUE", coast, "0.15 x peak torque")
        coast_ref = doc.section("COAST_REF")
        coast_ref.set("RPM", round(limiter))
        coast_ref.set("TORQUE", round(coast))
        coast_ref.set("NON_LINEARITY", 0.0, 2)

        turbo = engine.turbo
        if turbo is not None:
            for index, stage in enumerate(turbo.stages):
                name = f"TURBO_{index}"
                max_boost = ctx.clamp(name, "MAX_BOOST", stage.max_boost, *LIMITS["BOOST"])
                section = doc.section(name)
                section.set("LAG_DN", ctx.clamp(name, "LAG_DN", stage.lag_down, *LIMITS["LAG"]), 3)
                section.set("LAG_UP", ctx.clamp(name, "LAG_UP", stage.lag_up, *LIMITS["LAG"]), 3)
                section.set("MAX_BOOST", max_boost, 2)
                section.set("WASTEGATE", ctx.clamp(name, "WASTEGATE", stage.wastegate, *LIMITS["BOOST"]), 2)
                section.set("DISPLAY_MAX_BOOST", derivations.display_max_boost(max_boost), 1)
                section.set("REFERENCE_RPM", round(stage.reference_rpm))
                section.set("GAMMA", stage.gamma, 2)
                section.set("COCKPIT_ADJUSTABLE", 0)
            doc.section("BOV").set("PRESSURE_THRESHOLD", 0.50, 2)

        if engine.fuel is not None:
            self._write_fuel_flow(doc, unit, curve, ctx)

        damage = doc.section("DAMAGE")
        damage.set("RPM_THRESHOLD", round(limiter) + 200)
        damage.set("RPM_DAMAGE_K", 1)
        if turbo is not None:
            damage.set("TURBO_BOOST_THRESHOLD", math.ceil(round(turbo.max_boost, 6)))
            damage.set("TURBO_DAMAGE_K", 4)
        else:
            damage.set("TURBO_BOOST_THRESHOLD", 0)
            damage.set("TURBO_DAMAGE_K", 0)
        return doc

    def _turbo_controller(self, unit: CanonicalEngineUnit, ctx: TranslationContext) -> IniDocument:
        curve = unit.engine.turbo.boost_curve
        boost = ctx.clamp_series("CONTROLLER_0", "LUT", curve.boosts, *LIMITS["BOOST"])
        doc = IniDocument()
        ctrl = doc.section("CONTROLLER_0")
        ctrl.set("INPUT", "RPMS")
        ctrl.set("COMBINATOR", "ADD")
        ctrl.set("LUT", inline_lut(zip(curve.speeds, boost), decimals=2))
        ctrl.set("FILTER", 0.95, 2)
        ctrl.set("UP_LIMIT", 10000)
        ctrl.set("DOWN_LIMIT", 0)
        return doc

    def _write_fuel_flow(
        self, doc: IniDocument, unit: CanonicalEngineUnit, curve: TorqueCurve, ctx: TranslationContext,
    ) -> None:
        """Flow-rate fuel model: idle settings plus a kg/h limit by rpm."""
        engine = unit.engine
        data = doc.section("ENGINE_DATA")
        data.set("IDLE_THROTTLE", derivations.IDLE_THROTTLE, 3)
        data.set("IDLE_CUTOFF", round(derivations.idle_cutoff(engine)))
        data.set("MECHANICAL_EFFICIENCY", derivations.drivetrain_efficiency(unit.drivetrain.layout), 3)

        flows = ctx.clamp_series(
            "FUEL_CONSUMPTION", "MAX_FUEL_FLOW_LUT",
            derivations.fuel_flow(engine, curve.speeds), *LIMITS["FUEL_FLOW"],
        )
        section = doc.section("FUEL_CONSUMPTION")
        section.set("MAX_FUEL_FLOW", round(derivations.max_fuel_flow(flows)))
        section.set("LOG_FUEL_FLOW", 0)
        section.set("MAX_FUEL_FLOW_LUT", inline_lut(zip(curve.speeds, flows), decimals=0))

    @staticmethod
    def _car_ini(unit: CanonicalEngineUnit) -> IniDocument:
        doc = IniDocument()
        doc.section("FUEL").set("CONSUMPTION", derivations.basic_fuel_consumption(unit.engine), 4)
        return doc

    @staticmethod
    def _ui_car(unit: CanonicalEngineUnit, curve: TorqueCurve, ctx: TranslationContext) -> str:
        """ui_car.json fields: curves as string pairs, specs as display text."""
        powers = [kw_to_bhp(kw) for kw in curve.powers()]
        _, peak_torque = unit.engine.peak_torque()
        _, peak_kw = unit.engine.peak_power()
        peak_bhp = round(kw_to_bhp(peak_kw))

        mass = ctx.tuning.car_mass
        specs: Dict[str, str] = {
            "bhp": f"{peak_bhp}bhp",
            "torque": f"{round(peak_torque)}Nm",
            "weight": UI_BLANK if mass is None else f"{round(mass)}kg",
            "pwratio": UI_BLANK if mass is None or peak_bhp == 0 else f"{round(mass / peak_bhp, 2)}kg/hp",
            "acceleration": UI_BLANK,
            "range": UI_BLANK,
            "topspeed": UI_BLANK,
        }
        data: Dict[str, Any] = {
            "name": unit.name,
            "specs": specs,
            "torqueCurve": [[str(round(float(rpm))), str(round(float(t)))] for rpm, t in zip(curve.speeds, curve.torques)],
            "powerCurve": [[str(round(float(rpm))), str(round(float(p)))] for rpm, p in zip(curve.speeds, powers)],
        }
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # ------------------------------------------------------------------
    # Drivetrain
    # ------------------------------------------------------------------

    def _drivetrain_ini(self, unit: CanonicalEngineUnit, ctx: TranslationContext) -> IniDocument:
        engine = unit.engine
        drivetrain = unit.drivetrain
        gearbox = drivetrain.gearbox
        awd = drivetrain.awd
        doc = IniDocument()

        doc.section("HEADER").set("VERSION", 3)

        traction = drivetrain.layout.value
        if awd is not None and awd.centre.uses_ramp:
            traction = "AWD2"
        doc.section("TRACTION").set("TYPE", traction)

        gears = doc.section("GEARS")
        gears.set("COUNT", gearbox.gear_count)
        gears.set("GEAR_R", -ctx.clamp("GEARS", "GEAR_R", gearbox.reverse_ratio, *LIMITS["GEAR_RATIO"]), 3)
        for gear, ratio in enumerate(gearbox.forward_ratios, start=1):
            key = f"GEAR_{gear}"
            gears.set(key, ctx.clamp("GEARS", key, ratio, *LIMITS["GEAR_RATIO"]), 3)
        gears.set("FINAL", ctx.clamp("GEARS", "FINAL", gearbox.final_drive, *LIMITS["FINAL"]), 2)

        self._write_diff(doc.section("DIFFERENTIAL"), "DIFFERENTIAL", "", drivetrain.differential, ctx)
        if awd is not None:
            self._write_awd(doc, unit, ctx)

        up_ms = derivations.upshift_time(engine, drivetrain) * 1000.0
        change_up = ctx.clamp("GEARBOX", "CHANGE_UP_TIME", up_ms, *LIMITS["CHANGE_UP_TIME"])
        change_dn = ctx.clamp(
            "GEARBOX", "CHANGE_DN_TIME", derivations.downshift_time(up_ms), *LIMITS["CHANGE_DN_TIME"]
        )
        cutoff = ctx.clamp(
            "GEARBOX", "AUTO_CUTOFF_TIME", derivations.cutoff_time(up_ms), *LIMITS["AUTO_CUTOFF_TIME"]
        )
        box = doc.section("GEARBOX")
        box.set("CHANGE_UP_TIME", round(change_up))
        box.set("CHANGE_DN_TIME", round(change_dn))
        box.set("AUTO_CUTOFF_TIME", round(cutoff))
        box.set("SUPPORTS_SHIFTER", 1)
        box.set("VALID_SHIFT_RPM_WINDOW", 800)
        box.set("CONTROLS_WINDOW_GAIN", 0.40, 2)
        box.set(
            "INERTIA",
            ctx.clamp("GEARBOX", "INERTIA", derivations.gearbox_inertia(engine), *LIMITS["GEARBOX_INERTIA"]),
            3,
        )

        clutch_torque = ctx.clamp("CLUTCH", "MAX_TORQUE", drivetrain.clutch.max_torque, *LIMITS["CLUTCH_TORQUE"])
        doc.section("CLUTCH").set("MAX_TORQUE", round(clutch_torque))

        self._write_autoclutch(doc, unit, round(change_dn), ctx)

        level = ctx.clamp("AUTOBLIP", "LEVEL", derivations.autoblip_level(engine, drivetrain), *LIMITS["LEVEL"])
        blip_ms = round(derivations.BLIP_DURATION_S * 1000.0)
        autoblip = doc.section("AUTOBLIP")
        autoblip.set("ELECTRONIC", 1)
        autoblip.set("POINT_0", 10)
        autoblip.set("POINT_1", blip_ms)
        autoblip.set("POINT_2", blip_ms + round(derivations.BLIP_RELEASE_S * 1000.0))
        autoblip.set("LEVEL", level, 2)

        up_rpm, down_rpm = derivations.auto_shift_points(engine)
        shifter = doc.section("AUTO_SHIFTER")
        shifter.set("UP", round(up_rpm))
        shifter.set("DOWN", round(down_rpm))
        shifter.set("SLIP_THRESHOLD", 1.10, 2)
        shifter.set("GAS_CUTOFF_TIME", cutoff / 1000.0, 2)

        protection = doc.section("DOWNSHIFT_PROTECTION")
        protection.set("ACTIVE", 1)
        protection.set("DEBUG", 0)
        protection.set(
            "OVERREV",
            round(ctx.clamp("DOWNSHIFT_PROTECTION", "OVERREV", derivations.overrev_rpm(engine), *LIMITS["OVERREV"])),
        )
        protection.set("LOCK_N", 1)
        return doc

    @staticmethod
    def _write_diff(section, section_name: str, prefix: str, diff, ctx: TranslationContext) -> None:
        section.set(f"{prefix}POWER", ctx.clamp(section_name, f"{prefix}POWER", diff.power_lock, *LIMITS["LOCK"]), 2)
        section.set(f"{prefix}COAST", ctx.clamp(section_name, f"{prefix}COAST", diff.coast_lock, *LIMITS["LOCK"]), 2)
        section.set(
            f"{prefix}PRELOAD",
            round(ctx.clamp(section_name, f"{prefix}PRELOAD", diff.preload, *LIMITS["PRELOAD"])),
        )

    def _write_awd(self, doc: IniDocument, unit: CanonicalEngineUnit, ctx: TranslationContext) -> None:
        awd = unit.drivetrain.awd
        centre = awd.centre

        if centre.uses_ramp:
            name = "AWD2"
            section = doc.section(name)
            self._write_diff(section, name, "FRONT_DIFF_", awd.front, ctx)
            section.set(
                "CENTRE_RAMP_TORQUE",
                round(ctx.clamp(name, "CENTRE_RAMP_TORQUE", centre.ramp_torque, *LIMITS["RAMP_TORQUE"])),
            )
            max_torque = centre.max_torque
            if max_torque is None:
                max_torque = ctx.defaulted(
                    name, "CENTRE_MAX_TORQUE",
                    derivations.centre_max_torque(unit.engine, unit.drivetrain),
                    "0.5 x peak torque x gear 1 x final drive",
                )
            section.set(
                "CENTRE_MAX_TORQUE",
                round(ctx.clamp(name, "CENTRE_MAX_TORQUE", max_torque, *LIMITS["CENTRE_MAX_TORQUE"])),
            )
            self._write_diff(section, name, "REAR_DIFF_", awd.rear, ctx)
            return

        name = "AWD"
        section = doc.section(name)
        section.set(
            "FRONT_SHARE",
            round(ctx.clamp(name, "FRONT_SHARE", awd.front_share * 100.0, *LIMITS["FRONT_SHARE"])),
        )
        self._write_diff(section, name, "FRONT_DIFF_", awd.front, ctx)
        section.set("CENTRE_DIFF_POWER", ctx.clamp(name, "CENTRE_DIFF_POWER", centre.power_lock, *LIMITS["LOCK"]), 2)
        section.set("CENTRE_DIFF_COAST", ctx.clamp(name, "CENTRE_DIFF_COAST", centre.coast_lock, *LIMITS["LOCK"]), 2)
        preload = centre.preload
        if preload is None:
            preload = ctx.defaulted(
                name, "CENTRE_DIFF_PRELOAD",
                derivations.centre_preload(unit.engine, unit.drivetrain),
                "0.05 x peak torque x gear 1 x final drive",
            )
        section.set(
            "CENTRE_DIFF_PRELOAD",
            round(ctx.clamp(name, "CENTRE_DIFF_PRELOAD", preload, *LIMITS["PRELOAD"])),
        )
        self._write_diff(section, name, "REAR_DIFF_", awd.rear, ctx)

    @staticmethod
    def _write_autoclutch(doc: IniDocument, unit: CanonicalEngineUnit, change_dn_ms: int, ctx: TranslationContext) -> None:
        profile = ctx.tuning.autoclutch
        low, high = derivations.autoclutch_window(unit.engine)
        low = ctx.clamp("AUTOCLUTCH", "MIN_RPM", low, 0.0, unit.engine.redline)
        high = ctx.clamp("AUTOCLUTCH", "MAX_RPM", high, low, unit.engine.redline)

        autoclutch = doc.section("AUTOCLUTCH")
        autoclutch.set("UPSHIFT_PROFILE", "NONE")
        if profile.name == "none":
            autoclutch.set("DOWNSHIFT_PROFILE", "NONE")
        else:
            autoclutch.set("DOWNSHIFT_PROFILE", "DOWNSHIFT_PROFILE")
        autoclutch.set("USE_ON_CHANGES", profile.use_on_changes)
        autoclutch.set("MIN_RPM", round(low))
        autoclutch.set("MAX_RPM", round(high))
        autoclutch.set("FORCED_ON", profile.forced_on)

        if profile.name == "none":
            return
        points = profile.points or (10, change_dn_ms, change_dn_ms + 60)
        downshift = doc.section("DOWNSHIFT_PROFILE")
        for index, point in enumerate(points):
            downshift.set(f"POINT_{index}", int(point))
