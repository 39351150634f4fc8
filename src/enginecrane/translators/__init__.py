"""
Translators module - canonical unit to target simulator configuration.

This module contains:
- Translator / TargetConfigBundle: the shared contract
- AssettoCorsaTranslator: engine.ini, power.lut, drivetrain.ini, ...
- BeamNGTranslator: jbeam engine and drivetrain parts
- derivations: documented formulas for parameters the model lacks

Targets form a closed set; a new simulator is a new Translator subclass
registered in TRANSLATORS.
"""

from typing import Dict, List, Type

from enginecrane.translators.base import (
    ConfigFile,
    TargetConfigBundle,
    TranslationContext,
    Translator,
)
from enginecrane.translators.assetto_corsa import AssettoCorsaTranslator
from enginecrane.translators.beamng import BeamNGTranslator

TRANSLATORS: Dict[str, Type[Translator]] = {
    AssettoCorsaTranslator.target: AssettoCorsaTranslator,
    BeamNGTranslator.target: BeamNGTranslator,
}


def available_targets() -> List[str]:
    return sorted(TRANSLATORS)


def get_translator(target: str) -> Translator:
    """Instantiate the translator registered for ``target``.

    Raises:
        KeyError: If no translator exists for ``target``
    """
    try:
        return TRANSLATORS[target]()
    except KeyError:
        raise KeyError(
            f"unknown target {target!r}; available: {', '.join(available_targets())}"
        ) from None


__all__ = [
    "ConfigFile",
    "TargetConfigBundle",
    "TranslationContext",
    "Translator",
    "AssettoCorsaTranslator",
    "BeamNGTranslator",
    "TRANSLATORS",
    "available_targets",
    "get_translator",
]
