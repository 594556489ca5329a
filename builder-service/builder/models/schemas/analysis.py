"""
Prompt analysis models - the structured reading of a free-text app request.
"""
from __future__ import annotations
from typing import FrozenSet, Tuple
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class AppType(str, Enum):
    """App categories, listed in classifier priority order"""
    TODO = "todo"
    SOCIAL = "social"
    ECOMMERCE = "ecommerce"
    FITNESS = "fitness"
    FINANCE = "finance"
    PRODUCTIVITY = "productivity"
    GAME = "game"
    UTILITY = "utility"
    OTHER = "other"


class ComplexityLevel(str, Enum):
    """Complexity tiers - drive the number of generation chunks"""
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class NavigationStyle(str, Enum):
    """Navigation shell of the generated app"""
    TABS = "tabs"
    STACK = "stack"
    DRAWER = "drawer"
    MIXED = "mixed"


class DataNeeds(str, Enum):
    """Where the app keeps its data"""
    NONE = "none"
    LOCAL = "local"
    API = "api"
    DATABASE = "database"


class AppAnalysis(BaseModel):
    """
    Structured analysis of one prompt.

    Immutable once produced. ``features`` is a set; use
    ``ordered_features()`` from the classifier for a stable iteration order.
    """
    model_config = ConfigDict(frozen=True)

    type: AppType = AppType.OTHER
    complexity: ComplexityLevel = ComplexityLevel.SIMPLE
    features: FrozenSet[str] = Field(default_factory=frozenset)
    screens: Tuple[str, ...] = ("home",)
    components: Tuple[str, ...] = ("Header", "Button", "Card")
    navigation: NavigationStyle = NavigationStyle.STACK
    data_needs: DataNeeds = DataNeeds.NONE

    def has_feature(self, feature: str) -> bool:
        return feature in self.features
