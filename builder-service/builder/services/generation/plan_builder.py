"""
Plan Builder - turns an AppAnalysis into a chunked GenerationPlan.

Every plan has exactly one ``screens-navigation`` chunk first. Further chunks
follow natural seams (component groups, feature groups, data layer) and are
merged, split, or padded with foundation/polish units until the chunk count
lands inside the bounds for the analysis complexity.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from builder.config import settings
from builder.models.prompts import PromptType, get_template
from builder.models.schemas.analysis import AppAnalysis, ComplexityLevel, DataNeeds, NavigationStyle
from builder.models.schemas.plan import Chunk, GenerationPlan, PlanMetadata
from builder.services.analysis.classifier_rules import NATIVE_MODULES
from builder.services.analysis.prompt_classifier import extract_app_name, ordered_features
from builder.utils.logging import get_logger

logger = get_logger(__name__)


SCREENS_CHUNK = "screens-navigation"

# (min, max) chunk count per complexity; None means unbounded
CHUNK_BOUNDS: Dict[ComplexityLevel, Tuple[int, Optional[int]]] = {
    ComplexityLevel.SIMPLE: (1, 2),
    ComplexityLevel.MEDIUM: (3, 4),
    ComplexityLevel.COMPLEX: (5, None),
}

# A simple app this small is generated in a single call
SINGLE_CHUNK_MAX_FILES = 6

COMPONENTS_PER_CHUNK = 3
FEATURES_PER_CHUNK = 2
TABS_MAX_SCREENS = 4

# Output token estimates per file
LAYOUT_TOKENS = 600
SCREEN_TOKENS = 1200
COMPONENT_TOKENS = 700
DEFINITION_TOKENS = 400
MODULE_TOKENS = 600
CHUNK_OVERHEAD_TOKENS = 300

# Budget headroom over the estimate, rounded up to this step
TOKEN_HEADROOM = 1.5
TOKEN_STEP = 500

# Throughput used for the time estimate
TOKENS_PER_SECOND = 60

AUTH_SCREENS = {"login", "register"}


def estimate_file_tokens(path: str) -> int:
    """Rough output size of one generated file"""
    name = path.rsplit("/", 1)[-1]
    if name.startswith("_layout."):
        return LAYOUT_TOKENS
    if path.startswith("app/"):
        return SCREEN_TOKENS
    if path.startswith("components/"):
        return COMPONENT_TOKENS
    if path.startswith(("types/", "constants/")):
        return DEFINITION_TOKENS
    return MODULE_TOKENS


def _camel(tag: str) -> str:
    parts = [p for p in re.split(r"[^a-zA-Z0-9]+", tag) if p]
    if not parts:
        return "feature"
    return parts[0].lower() + "".join(p[:1].upper() + p[1:] for p in parts[1:])


@dataclass
class PlanUnit:
    """Mutable chunk draft used while fitting the plan"""
    name: str
    tasks: List[str]
    target_files: List[str] = field(default_factory=list)

    @property
    def estimated_tokens(self) -> int:
        return CHUNK_OVERHEAD_TOKENS + sum(estimate_file_tokens(p) for p in self.target_files)

    @property
    def is_screens(self) -> bool:
        return self.name == SCREENS_CHUNK


class PlanBuilder:
    """
    Deterministic plan construction.

    Features:
    - Expo Router target paths per navigation style
    - Complexity-driven chunk count bounds
    - Token-budget splitting of oversized chunks
    - Shared system prompt carrying the output contract
    """

    def __init__(
        self,
        max_chunk_tokens: Optional[int] = None,
        request_interval_seconds: Optional[float] = None,
    ):
        self.max_chunk_tokens = max_chunk_tokens or settings.max_chunk_tokens
        self.request_interval_seconds = (
            request_interval_seconds
            if request_interval_seconds is not None
            else settings.rate_limit_interval_seconds
        )

    def build_plan(
        self,
        analysis: AppAnalysis,
        prompt: str,
        base_files: Sequence[str] = (),
    ) -> GenerationPlan:
        """
        Build the generation plan for one request.

        Args:
            analysis: Classifier output for the prompt
            prompt: Original user prompt
            base_files: Paths already provided by the base template

        Returns:
            GenerationPlan
        """
        app_name = extract_app_name(prompt, analysis.type)

        units = self._natural_units(analysis)
        total_files = sum(len(u.target_files) for u in units)
        lo, hi = self._bounds(analysis.complexity, total_files)

        units = self._fit(units, lo, hi)
        self._uniquify_names(units)

        system_prompt = self._system_prompt(analysis, app_name, base_files)
        chunks = tuple(
            self._to_chunk(unit, index, len(units), prompt)
            for index, unit in enumerate(units, start=1)
        )
        metadata = self._metadata(units)

        plan = GenerationPlan(
            app_name=app_name,
            analysis=analysis,
            chunks=chunks,
            system_prompt=system_prompt,
            metadata=metadata,
        )

        logger.info(
            "plan.build.completed",
            extra={
                "app_name": app_name,
                "complexity": analysis.complexity.value,
                "chunk_count": len(chunks),
                "chunk_bounds": [lo, hi],
                "target_files": metadata.total_target_files,
                "estimated_time": metadata.estimated_time,
            }
        )
        return plan

    # ------------------------------------------------------------------ #
    # Natural seams
    # ------------------------------------------------------------------ #

    def screen_paths(self, analysis: AppAnalysis) -> List[str]:
        """Layout and screen routes for the navigation shell"""
        navigation = analysis.navigation
        screens = [s for s in analysis.screens if s not in AUTH_SCREENS]
        auth_screens = [s for s in analysis.screens if s in AUTH_SCREENS]

        paths = ["app/_layout.tsx"]

        if navigation is NavigationStyle.STACK:
            paths.extend(self._route("app", s) for s in screens)

        elif navigation is NavigationStyle.TABS:
            paths.append("app/(tabs)/_layout.tsx")
            paths.extend(self._route("app/(tabs)", s) for s in screens)

        elif navigation is NavigationStyle.DRAWER:
            paths.append("app/(drawer)/_layout.tsx")
            paths.extend(self._route("app/(drawer)", s) for s in screens)

        else:
            # Mixed: a tab bar for the primary screens, stack routes for the rest
            paths.append("app/(tabs)/_layout.tsx")
            paths.extend(self._route("app/(tabs)", s) for s in screens[:TABS_MAX_SCREENS])
            paths.extend(self._route("app", s) for s in screens[TABS_MAX_SCREENS:])

        paths.extend(f"app/(auth)/{s}.tsx" for s in auth_screens)
        return paths

    @staticmethod
    def _route(folder: str, screen: str) -> str:
        return f"{folder}/index.tsx" if screen == "home" else f"{folder}/{screen}.tsx"

    def _natural_units(self, analysis: AppAnalysis) -> List[PlanUnit]:
        units = [
            PlanUnit(
                name=SCREENS_CHUNK,
                tasks=[
                    f"Create the {analysis.navigation.value} navigation shell and the screens: "
                    f"{', '.join(analysis.screens)}."
                ],
                target_files=self.screen_paths(analysis),
            )
        ]

        components = list(analysis.components)
        for start in range(0, len(components), COMPONENTS_PER_CHUNK):
            group = components[start:start + COMPONENTS_PER_CHUNK]
            units.append(PlanUnit(
                name="components",
                tasks=[f"Create reusable components: {', '.join(group)}."],
                target_files=[f"components/{name}.tsx" for name in group],
            ))

        features = ordered_features(analysis)
        for start in range(0, len(features), FEATURES_PER_CHUNK):
            group = features[start:start + FEATURES_PER_CHUNK]
            described = []
            for feature in group:
                module = NATIVE_MODULES.get(feature)
                described.append(f"{feature} ({module.package})" if module else feature)
            units.append(PlanUnit(
                name="features",
                tasks=[f"Implement helpers and hooks for: {', '.join(described)}."],
                target_files=[f"utils/{_camel(feature)}.ts" for feature in group],
            ))

        data_unit = self._data_unit(analysis.data_needs)
        if data_unit is not None:
            units.append(data_unit)

        return units

    @staticmethod
    def _data_unit(data_needs: DataNeeds) -> Optional[PlanUnit]:
        if data_needs is DataNeeds.API:
            return PlanUnit(
                name="data-layer",
                tasks=["Create a typed API client with loading and error handling."],
                target_files=["utils/api.ts"],
            )
        if data_needs in (DataNeeds.LOCAL, DataNeeds.DATABASE):
            return PlanUnit(
                name="data-layer",
                tasks=["Create a typed persistence layer on AsyncStorage."],
                target_files=["utils/storage.ts"],
            )
        return None

    @staticmethod
    def _filler_units() -> List[PlanUnit]:
        return [
            PlanUnit(
                name="foundation",
                tasks=["Create shared TypeScript types and theme constants."],
                target_files=["types/index.ts", "constants/Theme.ts"],
            ),
            PlanUnit(
                name="polish",
                tasks=["Create loading and error state components."],
                target_files=["components/LoadingState.tsx", "components/ErrorState.tsx"],
            ),
        ]

    # ------------------------------------------------------------------ #
    # Fitting
    # ------------------------------------------------------------------ #

    @staticmethod
    def _bounds(complexity: ComplexityLevel, total_files: int) -> Tuple[int, Optional[int]]:
        lo, hi = CHUNK_BOUNDS[complexity]
        if complexity is ComplexityLevel.SIMPLE and total_files <= SINGLE_CHUNK_MAX_FILES:
            return 1, 1
        return lo, hi

    def _fit(self, units: List[PlanUnit], lo: int, hi: Optional[int]) -> List[PlanUnit]:
        units = self._split_oversized(units)

        fillers = self._filler_units()
        while len(units) < lo and fillers:
            units.append(fillers.pop(0))

        while len(units) < lo:
            if not self._split_largest(units):
                logger.warning(
                    "plan.fit.under_bound",
                    extra={"chunk_count": len(units), "min_chunks": lo}
                )
                break

        while hi is not None and len(units) > hi:
            if not self._merge_adjacent(units):
                # The token ceiling wins over the upper count bound
                logger.warning(
                    "plan.fit.over_bound",
                    extra={"chunk_count": len(units), "max_chunks": hi}
                )
                break

        return units

    def _split_oversized(self, units: List[PlanUnit]) -> List[PlanUnit]:
        result: List[PlanUnit] = []
        pending = list(units)
        while pending:
            unit = pending.pop(0)
            if (
                unit.estimated_tokens > self.max_chunk_tokens
                and len(self._splittable_files(unit)) > 1
            ):
                head, tail = self._split(unit)
                pending[0:0] = [head, tail]
            else:
                result.append(unit)
        return result

    def _split_largest(self, units: List[PlanUnit]) -> bool:
        candidates = [
            (unit.estimated_tokens, -index, index)
            for index, unit in enumerate(units)
            if len(self._splittable_files(unit)) > 1
        ]
        if not candidates:
            return False
        _, _, index = max(candidates)
        head, tail = self._split(units[index])
        units[index:index + 1] = [head, tail]
        return True

    @staticmethod
    def _splittable_files(unit: PlanUnit) -> List[str]:
        # The navigation chunk always keeps its layouts and at least one screen
        if unit.is_screens:
            return [p for p in unit.target_files if not p.endswith("/_layout.tsx")]
        return unit.target_files

    def _split(self, unit: PlanUnit) -> Tuple[PlanUnit, PlanUnit]:
        movable = self._splittable_files(unit)
        keep_count = max(1, len(movable) // 2) if unit.is_screens else len(movable) // 2
        moved = movable[keep_count:]
        kept = [p for p in unit.target_files if p not in moved]

        head = PlanUnit(name=unit.name, tasks=list(unit.tasks), target_files=kept)
        tail = PlanUnit(
            name="screens" if unit.is_screens else unit.name,
            tasks=[f"Continue the previous part with: {', '.join(moved)}."],
            target_files=moved,
        )
        return head, tail

    def _merge_adjacent(self, units: List[PlanUnit]) -> bool:
        """Merge the last pair whose combined size fits one chunk"""
        for index in range(len(units) - 1, 0, -1):
            first, second = units[index - 1], units[index]
            combined = first.estimated_tokens + second.estimated_tokens - CHUNK_OVERHEAD_TOKENS
            if combined <= self.max_chunk_tokens:
                units[index - 1:index + 1] = [PlanUnit(
                    name=first.name,
                    tasks=first.tasks + second.tasks,
                    target_files=first.target_files + second.target_files,
                )]
                return True
        return False

    @staticmethod
    def _uniquify_names(units: List[PlanUnit]) -> None:
        counts: Dict[str, int] = {}
        for unit in units:
            counts[unit.name] = counts.get(unit.name, 0) + 1

        seen: Dict[str, int] = {}
        for unit in units:
            if counts[unit.name] > 1:
                seen[unit.name] = seen.get(unit.name, 0) + 1
                unit.name = f"{unit.name}-{seen[unit.name]}"

    # ------------------------------------------------------------------ #
    # Output
    # ------------------------------------------------------------------ #

    def _max_tokens(self, estimate: int) -> int:
        budget = int(math.ceil(estimate * TOKEN_HEADROOM / TOKEN_STEP) * TOKEN_STEP)
        return max(estimate, min(self.max_chunk_tokens, budget))

    def _to_chunk(self, unit: PlanUnit, index: int, count: int, prompt: str) -> Chunk:
        user_prompt = get_template(PromptType.APP_SKELETON).format_user(
            prompt=prompt.strip(),
            chunk_index=index,
            chunk_count=count,
            chunk_name=unit.name,
            task="\n".join(unit.tasks),
            target_files="\n".join(f"- {path}" for path in unit.target_files),
        )
        return Chunk(
            name=unit.name,
            prompt=user_prompt,
            max_tokens=self._max_tokens(unit.estimated_tokens),
            target_files=tuple(unit.target_files),
        )

    def _system_prompt(self, analysis: AppAnalysis, app_name: str, base_files: Sequence[str]) -> str:
        features = ordered_features(analysis)
        native = [NATIVE_MODULES[f] for f in features if f in NATIVE_MODULES]

        return get_template(PromptType.APP_SKELETON).format_system(
            base_files="\n".join(f"- {path}" for path in sorted(base_files)) or "- (none)",
            app_name=app_name,
            app_type=analysis.type.value,
            complexity=analysis.complexity.value,
            navigation=analysis.navigation.value,
            data_needs=analysis.data_needs.value,
            features=", ".join(features) or "basic functionality",
            screens=", ".join(analysis.screens),
            components=", ".join(analysis.components),
            native_modules="\n".join(
                f"- {m.name}: {m.package}@{m.version}" for m in native
            ) or "- (none)",
        )

    def _metadata(self, units: List[PlanUnit]) -> PlanMetadata:
        total_tokens = sum(u.estimated_tokens for u in units)
        seconds = int(math.ceil(
            total_tokens / TOKENS_PER_SECOND + len(units) * self.request_interval_seconds
        ))
        return PlanMetadata(
            estimated_time=self._format_duration(seconds),
            estimated_time_seconds=seconds,
            rate_limit_gap_ms=int(round(self.request_interval_seconds * 1000)),
            total_target_files=sum(len(u.target_files) for u in units),
        )

    @staticmethod
    def _format_duration(seconds: int) -> str:
        if seconds < 60:
            return f"~{seconds}s"
        minutes, rest = divmod(seconds, 60)
        return f"~{minutes}m {rest}s" if rest else f"~{minutes}m"


# Global instance
plan_builder = PlanBuilder()


def build_plan(analysis: AppAnalysis, prompt: str, base_files: Sequence[str] = ()) -> GenerationPlan:
    return plan_builder.build_plan(analysis, prompt, base_files)
