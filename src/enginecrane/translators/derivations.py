"""
Default derivations for parameters the canonical model does not carry.

Every target format asks for values an Automation export never states
(shift timing, autoblip level, autoclutch window...). They are derived
here from engine redline, inertia and torque capacity with explicit
formulas. Symbols used below:

    ω_r   redline in rad/s
    I     engine rotating inertia (kg·m²)
    T_c   clutch torque capacity (N·m)
    T_pk  peak engine torque (N·m)
    ρ     smallest adjacent forward-ratio quotient r(n+1)/r(n)
"""

from typing import Tuple
import math

import numpy as np

from enginecrane.model.drivetrain import (
    AwdSplit,
    CentreDifferential,
    Differential,
    DrivetrainModel,
    TractionLayout,
)
from enginecrane.model.engine import EngineModel, TurboStage
from enginecrane.units.quantity import rpm_to_rad_s

# Shift timing
BASE_SHIFT_TIME_S = 0.05        # actuator time of an ideal sequential box
CLUTCH_SYNC_SHARE = 0.5         # share of clutch capacity used to sync revs
DOWNSHIFT_TIME_FACTOR = 1.4
CUTOFF_TIME_FACTOR = 1.15

# Autoblip
BLIP_DURATION_S = 0.15
BLIP_RELEASE_S = 0.03

GEARBOX_INERTIA_SHARE = 0.12

DRIVETRAIN_EFFICIENCY = {
    TractionLayout.FWD: 0.90,
    TractionLayout.RWD: 0.85,
    TractionLayout.AWD: 0.75,
}

# Autoclutch engagement window
AUTOCLUTCH_IDLE_FACTOR = 1.5
AUTOCLUTCH_WINDOW_SHARE = 0.15

OVERREV_SHARE = 0.025
UPSHIFT_SHARE = 0.95
DOWNSHIFT_MIN_SHARE = 0.55

DEFAULT_COAST_SHARE = 0.15
CENTRE_PRELOAD_SHARE = 0.05
CENTRE_MAX_TORQUE_SHARE = 0.5
TURBO_INERTIA_SCALE = 0.05

# AWD split used when a layout override asks for AWD without split data
DEFAULT_FRONT_SHARE = 0.4
DEFAULT_FRONT_LOCK = 0.05
DEFAULT_CENTRE_LOCK = 0.2


def shift_speed_drop(engine: EngineModel, drivetrain: DrivetrainModel) -> float:
    """Largest engine speed drop across an upshift at redline (rad/s).

    Δω = ω_r · (1 - ρ)
    """
    return rpm_to_rad_s(engine.redline) * (1.0 - drivetrain.gearbox.min_step_quotient())


def upshift_time(engine: EngineModel, drivetrain: DrivetrainModel) -> float:
    """Upshift time in seconds.

    t_up = 0.05 + I·Δω / (0.5·T_c)

    The engine inertia has to be slowed by Δω using half the clutch
    capacity; more inertia or less clutch means a slower shift. A clutch
    with no capacity gives an unbounded time (clamped by the target).
    """
    sync_torque = CLUTCH_SYNC_SHARE * drivetrain.clutch.max_torque
    if sync_torque <= 0.0:
        return math.inf
    return BASE_SHIFT_TIME_S + engine.inertia * shift_speed_drop(engine, drivetrain) / sync_torque


def downshift_time(upshift_s: float) -> float:
    """t_dn = 1.4 · t_up"""
    return DOWNSHIFT_TIME_FACTOR * upshift_s


def cutoff_time(upshift_s: float) -> float:
    """Gas cut on upshift: t_cut = 1.15 · t_up"""
    return CUTOFF_TIME_FACTOR * upshift_s


def autoblip_level(engine: EngineModel, drivetrain: DrivetrainModel) -> float:
    """Throttle fraction needed to raise revs by Δω within the blip.

    level = I·Δω / (t_blip · T_pk), t_blip = 0.15 s
    """
    _, peak_torque = engine.peak_torque()
    if peak_torque <= 0.0:
        return 1.0
    return engine.inertia * shift_speed_drop(engine, drivetrain) / (BLIP_DURATION_S * peak_torque)


def gearbox_inertia(engine: EngineModel) -> float:
    """I_gearbox = 0.12 · I"""
    return GEARBOX_INERTIA_SHARE * engine.inertia


def drivetrain_efficiency(layout: TractionLayout) -> float:
    """Mechanical efficiency from crank to wheels: FWD 0.90, RWD 0.85, AWD 0.75."""
    return DRIVETRAIN_EFFICIENCY[layout]


def autoclutch_window(engine: EngineModel) -> Tuple[float, float]:
    """Autoclutch engagement window in rpm.

    min = 1.5 · idle, max = min + 0.15 · (redline - idle)
    """
    low = AUTOCLUTCH_IDLE_FACTOR * engine.idle_speed
    high = low + AUTOCLUTCH_WINDOW_SHARE * (engine.redline - engine.idle_speed)
    return low, high


def overrev_rpm(engine: EngineModel) -> float:
    """Downshift protection margin: 0.025 · redline."""
    return OVERREV_SHARE * engine.redline


def auto_shift_points(engine: EngineModel) -> Tuple[float, float]:
    """Automatic shifter points in rpm.

    up = 0.95 · redline, down = max(peak torque rpm, 0.55 · redline)
    """
    peak_rpm, _ = engine.peak_torque()
    up = UPSHIFT_SHARE * engine.redline
    down = min(max(peak_rpm, DOWNSHIFT_MIN_SHARE * engine.redline), up)
    return up, down


def coast_torque(engine: EngineModel) -> Tuple[float, bool]:
    """Engine braking torque at redline and whether it was measured.

    With friction data: ω_r · dynamic + engine_brake + static.
    Without: 0.15 · T_pk.
    """
    friction = engine.friction
    if friction is not None:
        torque = (
            rpm_to_rad_s(engine.redline) * friction.dynamic_friction
            + friction.engine_brake_torque
            + friction.static_torque
        )
        return torque, True
    _, peak_torque = engine.peak_torque()
    return DEFAULT_COAST_SHARE * max(peak_torque, 0.0), False


def first_gear_torque(engine: EngineModel, drivetrain: DrivetrainModel) -> float:
    """Peak torque multiplied through first gear and final drive."""
    _, peak_torque = engine.peak_torque()
    return max(peak_torque, 0.0) * drivetrain.gearbox.overall_ratio(1)


def centre_preload(engine: EngineModel, drivetrain: DrivetrainModel) -> float:
    """Default centre preload: 0.05 · T_pk · r1 · final_drive (N·m)."""
    return CENTRE_PRELOAD_SHARE * first_gear_torque(engine, drivetrain)


def centre_max_torque(engine: EngineModel, drivetrain: DrivetrainModel) -> float:
    """Default centre coupling capacity: 0.5 · T_pk · r1 · final_drive (N·m)."""
    return CENTRE_MAX_TORQUE_SHARE * first_gear_torque(engine, drivetrain)


def default_awd_split(differential: Differential) -> AwdSplit:
    """AWD split for a unit forced to AWD; the rear axle keeps the main diff."""
    return AwdSplit(
        front_share=DEFAULT_FRONT_SHARE,
        front=Differential(DEFAULT_FRONT_LOCK, DEFAULT_FRONT_LOCK, 0.0),
        centre=CentreDifferential(DEFAULT_CENTRE_LOCK, DEFAULT_CENTRE_LOCK),
        rear=differential,
    )


def boost_free_torque(engine: EngineModel, speeds: np.ndarray, torques: np.ndarray) -> np.ndarray:
    """Crank torque with the boost contribution divided out.

    T_na = T / (1 + max(0, boost(rpm)))

    Both targets rebuild boosted torque from their own turbo model, so the
    written curve must be the unboosted one. Naturally aspirated engines
    are returned unchanged.
    """
    torques = np.asarray(torques, dtype=float)
    turbo = engine.turbo
    if turbo is None:
        return torques
    boost = np.array([turbo.boost_at(rpm) for rpm in speeds])
    return torques / (1.0 + np.maximum(boost, 0.0))


def turbo_inertia(stage: TurboStage) -> float:
    """Turbo rotor inertia equivalent to a spool filter coefficient.

    I_turbo = 0.05 · lag_up / (1 - lag_up)
    """
    return TURBO_INERTIA_SCALE * stage.lag_up / (1.0 - stage.lag_up)


def display_max_boost(max_boost: float) -> float:
    """Boost gauge maximum: max boost rounded up to 0.1 bar."""
    return math.ceil(round(max_boost * 10.0, 6)) / 10.0


# Fuel
IDLE_THROTTLE = 0.03
IDLE_CUTOFF_MARGIN_RPM = 100.0
MAX_FLOW_SAMPLE_SHARE = 0.7


def basic_fuel_consumption(engine: EngineModel) -> float:
    """Per-rpm consumption constant C for a simple fuel model.

    The game burns rpm · throttle · C / 1000 litres per second, so at
    full throttle and peak power rpm n_p:

        C = 1000 · P_pk · bsfc / (ρ · 3600) / n_p

    with P_pk in kW, bsfc the average in g/kWh and ρ in kg/m³ (= g/l).
    """
    fuel = engine.fuel
    peak_rpm, peak_power = engine.peak_power()
    litres_per_second = peak_power * fuel.bsfc / fuel.fuel_density / 3600.0
    return litres_per_second * 1000.0 / peak_rpm


def fuel_flow(engine: EngineModel, speeds: np.ndarray) -> np.ndarray:
    """Full-throttle fuel mass flow in kg/h: bsfc(rpm) · P(rpm) / 1000."""
    fuel = engine.fuel
    bsfc = np.array([fuel.bsfc_at(rpm) for rpm in speeds])
    power = np.array([engine.torque_curve.power_at(rpm) for rpm in speeds])
    return bsfc * power / 1000.0


def max_fuel_flow(flows: np.ndarray) -> float:
    """Flow limit: the sample 70% of the way through the range."""
    index = min(int(round(len(flows) * MAX_FLOW_SAMPLE_SHARE)), len(flows) - 1)
    return float(flows[index])


def idle_cutoff(engine: EngineModel) -> float:
    """Fuel cut on overrun above idle: idle + 100 rpm."""
    return engine.idle_speed + IDLE_CUTOFF_MARGIN_RPM
