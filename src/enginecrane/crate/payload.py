"""
Crate payload - mapping between the canonical model and plain data.

The payload is JSON with sorted keys and compact separators, so the same
unit always serializes to the same bytes.
"""

from datetime import datetime
from typing import Any, Dict, Optional
import hashlib
import json
import numpy as np

from enginecrane.errors import MalformedModel
from enginecrane.model.drivetrain import (
    AwdSplit,
    CentreDifferential,
    Clutch,
    Differential,
    DrivetrainModel,
    Gearbox,
)
from enginecrane.model.engine import (
    EngineDescription,
    EngineDimensions,
    EngineFriction,
    EngineModel,
    FuelEconomy,
    TurboConfig,
    TurboStage,
)
from enginecrane.model.unit import CanonicalEngineUnit, Provenance
from enginecrane.units.curve import BoostCurve, BsfcCurve, TorqueCurve


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""

    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super().default(obj)


def canonical_bytes(data: Dict[str, Any]) -> bytes:
    """Deterministic UTF-8 JSON encoding of a payload dict."""
    text = json.dumps(
        data,
        cls=NumpyEncoder,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def fingerprint_bytes(payload: bytes) -> bytes:
    return hashlib.sha256(payload).digest()


def payload_fingerprint(unit: CanonicalEngineUnit) -> str:
    """SHA-256 hex digest of the unit's canonical payload."""
    return hashlib.sha256(canonical_bytes(unit_to_dict(unit))).hexdigest()


# ----------------------------------------------------------------------
# model -> dict
# ----------------------------------------------------------------------

def _curve_to_dict(curve, value_key: str) -> Dict[str, Any]:
    return {"rpm": curve.speeds, value_key: curve.values}


def _stage_to_dict(stage: TurboStage) -> Dict[str, Any]:
    return {
        "max_boost": stage.max_boost,
        "reference_rpm": stage.reference_rpm,
        "lag_up": stage.lag_up,
        "lag_down": stage.lag_down,
        "wastegate": stage.wastegate,
        "gamma": stage.gamma,
    }


def engine_to_dict(engine: EngineModel) -> Dict[str, Any]:
    turbo = None
    if engine.turbo is not None:
        boost_curve = engine.turbo.boost_curve
        turbo = {
            "stages": [_stage_to_dict(s) for s in engine.turbo.stages],
            "boost_curve": None if boost_curve is None else _curve_to_dict(boost_curve, "boost"),
        }
    friction = None
    if engine.friction is not None:
        friction = {
            "static_torque": engine.friction.static_torque,
            "dynamic_friction": engine.friction.dynamic_friction,
            "engine_brake_torque": engine.friction.engine_brake_torque,
        }
    dimensions = None
    if engine.dimensions is not None:
        dimensions = {
            "length": engine.dimensions.length,
            "width": engine.dimensions.width,
            "height": engine.dimensions.height,
        }
    fuel = None
    if engine.fuel is not None:
        bsfc_curve = engine.fuel.bsfc_curve
        fuel = {
            "bsfc": engine.fuel.bsfc,
            "bsfc_curve": None if bsfc_curve is None else _curve_to_dict(bsfc_curve, "bsfc"),
            "fuel_density": engine.fuel.fuel_density,
        }
    desc = engine.description
    return {
        "name": engine.name,
        "source_fingerprint": engine.source_fingerprint,
        "torque_curve": _curve_to_dict(engine.torque_curve, "torque"),
        "displacement": engine.displacement,
        "idle_speed": engine.idle_speed,
        "redline": engine.redline,
        "inertia": engine.inertia,
        "mass": engine.mass,
        "turbo": turbo,
        "friction": friction,
        "dimensions": dimensions,
        "fuel": fuel,
        "description": {
            "block_type": desc.block_type,
            "cylinders": desc.cylinders,
            "head_type": desc.head_type,
            "valves": desc.valves,
            "aspiration": desc.aspiration,
            "fuel_type": desc.fuel_type,
            "build_year": desc.build_year,
        },
    }


def _diff_to_dict(diff: Differential) -> Dict[str, Any]:
    return {"power_lock": diff.power_lock, "coast_lock": diff.coast_lock, "preload": diff.preload}


def drivetrain_to_dict(drivetrain: DrivetrainModel) -> Dict[str, Any]:
    awd = None
    if drivetrain.awd is not None:
        centre = drivetrain.awd.centre
        awd = {
            "front_share": drivetrain.awd.front_share,
            "front": _diff_to_dict(drivetrain.awd.front),
            "centre": {
                "power_lock": centre.power_lock,
                "coast_lock": centre.coast_lock,
                "preload": centre.preload,
                "ramp_torque": centre.ramp_torque,
                "max_torque": centre.max_torque,
            },
            "rear": _diff_to_dict(drivetrain.awd.rear),
        }
    gearbox = drivetrain.gearbox
    return {
        "gearbox": {
            "forward_ratios": list(gearbox.forward_ratios),
            "reverse_ratio": gearbox.reverse_ratio,
            "final_drive": gearbox.final_drive,
            "gear_count": gearbox.gear_count,
        },
        "clutch": {"max_torque": drivetrain.clutch.max_torque},
        "differential": _diff_to_dict(drivetrain.differential),
        "layout": drivetrain.layout.value,
        "awd": awd,
    }


def unit_to_dict(unit: CanonicalEngineUnit) -> Dict[str, Any]:
    """Plain-data form of a unit (current payload version)."""
    prov = unit.provenance
    return {
        "engine": engine_to_dict(unit.engine),
        "drivetrain": drivetrain_to_dict(unit.drivetrain),
        "provenance": {
            "source_tool": prov.source_tool,
            "source_version": prov.source_version,
            "original_id": prov.original_id,
            "created_at": prov.created_at.isoformat(),
        },
    }


# ----------------------------------------------------------------------
# dict -> model
# ----------------------------------------------------------------------

def _optional(data: Optional[Dict[str, Any]], builder):
    return None if data is None else builder(data)


def _stage_from_dict(data: Dict[str, Any]) -> TurboStage:
    return TurboStage(
        max_boost=data["max_boost"],
        reference_rpm=data["reference_rpm"],
        lag_up=data["lag_up"],
        lag_down=data["lag_down"],
        wastegate=data["wastegate"],
        gamma=data["gamma"],
    )


def _turbo_from_dict(data: Dict[str, Any]) -> TurboConfig:
    curve = data["boost_curve"]
    return TurboConfig(
        stages=tuple(_stage_from_dict(s) for s in data["stages"]),
        boost_curve=_optional(curve, lambda c: BoostCurve(c["rpm"], c["boost"])),
    )


def _fuel_from_dict(data: Dict[str, Any]) -> FuelEconomy:
    curve = data["bsfc_curve"]
    return FuelEconomy(
        bsfc=data["bsfc"],
        bsfc_curve=_optional(curve, lambda c: BsfcCurve(c["rpm"], c["bsfc"])),
        fuel_density=data["fuel_density"],
    )


def engine_from_dict(data: Dict[str, Any]) -> EngineModel:
    curve = data["torque_curve"]
    return EngineModel(
        name=data["name"],
        source_fingerprint=data["source_fingerprint"],
        torque_curve=TorqueCurve(curve["rpm"], curve["torque"]),
        displacement=data["displacement"],
        idle_speed=data["idle_speed"],
        redline=data["redline"],
        inertia=data["inertia"],
        mass=data["mass"],
        turbo=_optional(data["turbo"], _turbo_from_dict),
        friction=_optional(data["friction"], lambda f: EngineFriction(**f)),
        dimensions=_optional(data["dimensions"], lambda d: EngineDimensions(**d)),
        fuel=_optional(data["fuel"], _fuel_from_dict),
        description=EngineDescription(**data["description"]),
    )


def _diff_from_dict(data: Dict[str, Any]) -> Differential:
    return Differential(data["power_lock"], data["coast_lock"], data["preload"])


def _awd_from_dict(data: Dict[str, Any]) -> AwdSplit:
    return AwdSplit(
        front_share=data["front_share"],
        front=_diff_from_dict(data["front"]),
        centre=CentreDifferential(**data["centre"]),
        rear=_diff_from_dict(data["rear"]),
    )


def drivetrain_from_dict(data: Dict[str, Any]) -> DrivetrainModel:
    gearbox = data["gearbox"]
    return DrivetrainModel(
        gearbox=Gearbox(
            forward_ratios=tuple(gearbox["forward_ratios"]),
            reverse_ratio=gearbox["reverse_ratio"],
            final_drive=gearbox["final_drive"],
            gear_count=gearbox["gear_count"],
        ),
        clutch=Clutch(data["clutch"]["max_torque"]),
        differential=_diff_from_dict(data["differential"]),
        layout=data["layout"],
        awd=_optional(data["awd"], _awd_from_dict),
    )


def _timestamp(value) -> datetime:
    if not isinstance(value, str):
        raise MalformedModel("provenance.created_at", f"expected an ISO timestamp, got {value!r}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise MalformedModel("provenance.created_at", str(exc)) from exc


def unit_from_dict(data: Dict[str, Any]) -> CanonicalEngineUnit:
    """Rebuild a unit from plain data, re-running every model invariant.

    Raises:
        KeyError / TypeError: On missing or mistyped structure
        MalformedModel / InvalidQuantity: On invariant violations
    """
    prov = data["provenance"]
    return CanonicalEngineUnit(
        engine=engine_from_dict(data["engine"]),
        drivetrain=drivetrain_from_dict(data["drivetrain"]),
        provenance=Provenance(
            source_tool=prov["source_tool"],
            source_version=prov["source_version"],
            original_id=prov["original_id"],
            created_at=_timestamp(prov["created_at"]),
        ),
    )
