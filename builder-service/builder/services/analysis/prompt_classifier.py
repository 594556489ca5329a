"""
Prompt classifier - maps a free-text app request to an AppAnalysis.

Pure and deterministic: keyword rules with a rapidfuzz typo-tolerant fallback
for the app category. Every input, the empty string included, yields a valid
analysis (``other``/``simple`` when nothing matches).
"""
import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from rapidfuzz import fuzz, process
from loguru import logger

from builder.config import settings
from builder.models.schemas.analysis import (
    AppAnalysis,
    AppType,
    ComplexityLevel,
    DataNeeds,
    NavigationStyle,
)
from builder.services.analysis.classifier_rules import (
    APP_TYPE_RULES,
    BASE_COMPONENTS,
    BASE_SCREENS,
    COMPLEX_FEATURE_COUNT,
    COMPLEX_FEATURE_MARKERS,
    COMPLEX_MARKERS,
    COMPLEX_WORD_COUNT,
    COMPONENTS_BY_FEATURE,
    COMPONENTS_BY_TYPE,
    DATA_NEEDS_RULES,
    FEATURE_RULES,
    FEATURES_NEEDING_API,
    FUZZY_MIN_SCORE,
    FUZZY_MIN_WORD_LENGTH,
    MEDIUM_WORD_COUNT,
    NAVIGATION_RULES,
    SCREENS_BY_FEATURE,
    SCREENS_BY_TYPE,
    STACK_MAX_SCREENS,
    TABS_MAX_SCREENS,
)


class ClassificationError(Exception):
    """Reserved for strict-mode validation; the classifier itself is total"""
    pass


def _compile(keywords: Iterable[str]) -> Pattern:
    return re.compile(r"\b(?:" + "|".join(keywords) + ")")


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


_APP_NAME_BY_TYPE: Dict[AppType, str] = {
    AppType.TODO: "Todo",
    AppType.SOCIAL: "Social",
    AppType.ECOMMERCE: "Shop",
    AppType.FITNESS: "Fitness",
    AppType.FINANCE: "Finance",
    AppType.PRODUCTIVITY: "Productivity",
    AppType.GAME: "Game",
    AppType.UTILITY: "Utility",
}

_QUOTED_NAME = re.compile(r"[\"“]([^\"”\n]{2,40})[\"”]")
_CALLED_NAME = re.compile(
    r"\b(?i:called|named)\s+([A-Z0-9][\w'-]*(?:\s+[A-Z0-9][\w'-]*){0,3})"
)


class PromptClassifier:
    """
    Keyword/heuristic app classifier.

    Features:
    - Ordered category rules (first match in priority order wins)
    - Typo-tolerant category fallback (rapidfuzz)
    - Feature detection independent of the category
    - Screen, component, navigation and data-needs planning
    """

    def __init__(
        self,
        fuzzy_min_score: int = FUZZY_MIN_SCORE,
        fuzzy_min_word_length: int = FUZZY_MIN_WORD_LENGTH,
    ):
        self.fuzzy_min_score = fuzzy_min_score
        self.fuzzy_min_word_length = fuzzy_min_word_length

        self._type_patterns = [(tag, _compile(kws)) for tag, kws in APP_TYPE_RULES]
        self._type_fuzzy_candidates = [
            (tag, [kw for kw in kws if kw.isalpha() and len(kw) >= fuzzy_min_word_length])
            for tag, kws in APP_TYPE_RULES
        ]
        self._feature_patterns = [(tag, _compile(kws)) for tag, kws in FEATURE_RULES]
        self._navigation_patterns = [(tag, _compile(kws)) for tag, kws in NAVIGATION_RULES]
        self._data_patterns = [(tag, _compile(kws)) for tag, kws in DATA_NEEDS_RULES]
        self._medium_markers = _compile(COMPLEX_FEATURE_MARKERS)
        self._complex_markers = _compile(COMPLEX_MARKERS)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def classify(self, prompt: Optional[str]) -> AppAnalysis:
        """Classify one prompt. Never raises for string (or None) input."""
        text = (prompt or "").lower()

        app_type = self.detect_type(text)
        features = self.detect_features(text)
        complexity = self.detect_complexity(text, features)
        screens = self.plan_screens(app_type, features)
        components = self.plan_components(app_type, features)
        navigation = self.detect_navigation(text, screens)
        data_needs = self.detect_data_needs(text, app_type, features)

        analysis = AppAnalysis(
            type=app_type,
            complexity=complexity,
            features=frozenset(features),
            screens=screens,
            components=components,
            navigation=navigation,
            data_needs=data_needs,
        )

        logger.debug(
            f"Classified prompt: type={app_type.value}, complexity={complexity.value}, "
            f"features={features}, navigation={navigation.value}, data={data_needs.value}"
        )
        return analysis

    # ------------------------------------------------------------------ #
    # Individual passes
    # ------------------------------------------------------------------ #

    def detect_type(self, text: str) -> AppType:
        for tag, pattern in self._type_patterns:
            if pattern.search(text):
                return tag

        return self._fuzzy_type(text) or AppType.OTHER

    def _fuzzy_type(self, text: str) -> Optional[AppType]:
        """Second chance for misspelt category words ("wrokout", "budjet")"""
        words = [w for w in re.findall(r"[a-z]+", text) if len(w) >= self.fuzzy_min_word_length]
        if not words:
            return None

        for tag, candidates in self._type_fuzzy_candidates:
            if not candidates:
                continue
            for word in words:
                match = process.extractOne(
                    word,
                    candidates,
                    scorer=fuzz.ratio,
                    score_cutoff=self.fuzzy_min_score,
                )
                if match:
                    logger.debug(f"Fuzzy category match: '{word}' ~ '{match[0]}' ({match[1]:.0f})")
                    return tag
        return None

    def detect_features(self, text: str) -> List[str]:
        """Detected features in rule-table order"""
        return [tag for tag, pattern in self._feature_patterns if pattern.search(text)]

    def detect_complexity(self, text: str, features: Sequence[str]) -> ComplexityLevel:
        word_count = len(text.split())

        complexity = ComplexityLevel.SIMPLE
        if word_count > MEDIUM_WORD_COUNT or self._medium_markers.search(text):
            complexity = ComplexityLevel.MEDIUM
        if (
            word_count > COMPLEX_WORD_COUNT
            or self._complex_markers.search(text)
            or len(features) >= COMPLEX_FEATURE_COUNT
        ):
            complexity = ComplexityLevel.COMPLEX
        return complexity

    def plan_screens(self, app_type: AppType, features: Sequence[str]) -> Tuple[str, ...]:
        screens = list(BASE_SCREENS)
        screens.extend(SCREENS_BY_TYPE.get(app_type, []))
        for feature in features:
            screens.extend(SCREENS_BY_FEATURE.get(feature, []))
        return _unique(screens)

    def plan_components(self, app_type: AppType, features: Sequence[str]) -> Tuple[str, ...]:
        components = list(BASE_COMPONENTS)
        components.extend(COMPONENTS_BY_TYPE.get(app_type, []))
        for feature in features:
            components.extend(COMPONENTS_BY_FEATURE.get(feature, []))
        return _unique(components)

    def detect_navigation(self, text: str, screens: Sequence[str]) -> NavigationStyle:
        for tag, pattern in self._navigation_patterns:
            if pattern.search(text):
                return tag

        if len(screens) <= STACK_MAX_SCREENS:
            return NavigationStyle.STACK
        if len(screens) <= TABS_MAX_SCREENS:
            return NavigationStyle.TABS
        return NavigationStyle.MIXED

    def detect_data_needs(self, text: str, app_type: AppType, features: Sequence[str]) -> DataNeeds:
        for tag, pattern in self._data_patterns:
            if pattern.search(text):
                return tag

        if "offline-storage" in features:
            return DataNeeds.DATABASE
        if FEATURES_NEEDING_API.intersection(features) or len(features) > 2:
            return DataNeeds.API
        if app_type is AppType.OTHER and not features:
            return DataNeeds.NONE
        return DataNeeds.LOCAL


# ============================================================================
# HELPERS
# ============================================================================

def ordered_features(analysis: AppAnalysis) -> List[str]:
    """Features of an analysis in stable rule-table order"""
    order = {tag: index for index, (tag, _) in enumerate(FEATURE_RULES)}
    return sorted(analysis.features, key=lambda f: (order.get(f, len(order)), f))


def extract_app_name(prompt: Optional[str], app_type: Optional[AppType] = None) -> str:
    """
    Pick a display name for the app.

    Order: a quoted name, then "called X"/"named X" where X is capitalized,
    then "<Type> App", then the configured default.
    """
    text = (prompt or "").strip()

    quoted = _QUOTED_NAME.search(text)
    if quoted and quoted.group(1).strip():
        return quoted.group(1).strip()

    called = _CALLED_NAME.search(text)
    if called:
        name = called.group(1).strip(" .,!?:;'-")
        if name:
            return name

    if app_type is not None and app_type in _APP_NAME_BY_TYPE:
        return f"{_APP_NAME_BY_TYPE[app_type]} App"

    return settings.default_app_name


# Global instance
prompt_classifier = PromptClassifier()


def classify(prompt: Optional[str]) -> AppAnalysis:
    """Classify a prompt with the shared classifier"""
    return prompt_classifier.classify(prompt)
