"""
Virtual Merger - folds generated chunk output into the base file set.

Precedence:
- generated files overwrite base files at the same path
- base-only files are kept untouched
- between chunks, the later chunk in plan order wins (recorded as a collision)

``package.json`` is merged field-wise rather than replaced, and the Expo
packages the analysis calls for are added when the chunks contributed files.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from builder.models.schemas.analysis import AppAnalysis
from builder.models.schemas.files import RawFileSet, clean_file_set
from builder.services.analysis.classifier_rules import NATIVE_MODULES, NAVIGATION_PACKAGES
from builder.services.analysis.prompt_classifier import ordered_features
from builder.utils.logging import get_logger

logger = get_logger(__name__)


PACKAGE_MANIFEST = "package.json"
MERGED_MANIFEST_SECTIONS = ("dependencies", "devDependencies", "scripts")


@dataclass(frozen=True)
class MergeCollision:
    """Two chunks wrote the same path; the later one won"""
    path: str
    earlier_chunk: int
    later_chunk: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "earlier_chunk": self.earlier_chunk,
            "later_chunk": self.later_chunk,
        }


@dataclass
class MergeResult:
    files: RawFileSet
    collisions: List[MergeCollision] = field(default_factory=list)
    overridden_paths: List[str] = field(default_factory=list)
    injected_dependencies: List[str] = field(default_factory=list)

    @property
    def had_collisions(self) -> bool:
        return bool(self.collisions)


def _load_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def merge_package_manifests(base_text: str, generated_text: str) -> str:
    """
    Lay the generated manifest over the base one.

    ``dependencies``, ``devDependencies`` and ``scripts`` are unioned with the
    generated side winning per key. If either side is not a JSON object the
    generated text is returned as is.
    """
    base = _load_json_object(base_text)
    generated = _load_json_object(generated_text)
    if base is None or generated is None:
        logger.warning(
            "merge.manifest.unparseable",
            extra={"base_valid": base is not None, "generated_valid": generated is not None}
        )
        return generated_text

    merged = {**base, **generated}
    for section in MERGED_MANIFEST_SECTIONS:
        base_section = base.get(section)
        generated_section = generated.get(section)
        if isinstance(base_section, dict) or isinstance(generated_section, dict):
            merged[section] = {
                **(base_section if isinstance(base_section, dict) else {}),
                **(generated_section if isinstance(generated_section, dict) else {}),
            }

    return json.dumps(merged, indent=2) + "\n"


def required_dependencies(analysis: AppAnalysis) -> Dict[str, str]:
    """Packages the analysis calls for: native modules plus navigation libraries"""
    required: Dict[str, str] = {}
    for feature in ordered_features(analysis):
        module = NATIVE_MODULES.get(feature)
        if module is not None:
            required[module.package] = module.version
    required.update(NAVIGATION_PACKAGES.get(analysis.navigation, {}))
    return required


def inject_dependencies(manifest_text: str, packages: Mapping[str, str]) -> Tuple[str, List[str]]:
    """
    Add missing packages to ``dependencies``.

    Returns the (possibly unchanged) manifest and the package names added.
    Existing entries are never overwritten, so this is idempotent.
    """
    manifest = _load_json_object(manifest_text)
    if manifest is None or not packages:
        return manifest_text, []

    dependencies = manifest.get("dependencies")
    if not isinstance(dependencies, dict):
        dependencies = {}

    added = [name for name in packages if name not in dependencies]
    if not added:
        return manifest_text, []

    for name in added:
        dependencies[name] = packages[name]
    manifest["dependencies"] = dict(sorted(dependencies.items()))

    return json.dumps(manifest, indent=2) + "\n", added


class VirtualMerger:
    """
    Path-keyed merge of base and generated file sets.

    Features:
    - Later-chunk-wins collision handling with collision records
    - package.json dependency/script union
    - Analysis-driven Expo dependency injection
    """

    def __init__(self, min_content_length: Optional[int] = None):
        self.min_content_length = min_content_length

    def merge_files(
        self,
        base: Mapping[str, str],
        generated: Sequence[Mapping[str, str]],
        analysis: Optional[AppAnalysis] = None,
    ) -> MergeResult:
        """
        Merge generated chunk outputs over the base set.

        Args:
            base: Base template files
            generated: One file set per chunk, in plan order
            analysis: Used for dependency injection when given

        Returns:
            MergeResult
        """
        clean = (
            (lambda files: clean_file_set(files, self.min_content_length))
            if self.min_content_length is not None
            else clean_file_set
        )

        # Later chunks win between chunks
        combined: Dict[str, str] = {}
        origin: Dict[str, int] = {}
        collisions: List[MergeCollision] = []

        for chunk_index, chunk_files in enumerate(generated):
            for path, content in clean(chunk_files).items():
                if path in origin and origin[path] != chunk_index:
                    collision = MergeCollision(
                        path=path,
                        earlier_chunk=origin[path],
                        later_chunk=chunk_index,
                    )
                    collisions.append(collision)
                    logger.info("merge.collision.detected", extra=collision.to_dict())
                combined[path] = content
                origin[path] = chunk_index

        if not combined:
            logger.info(
                "merge.base.unchanged",
                extra={"base_file_count": len(base)}
            )
            return MergeResult(files=dict(base))

        files: Dict[str, str] = dict(base)
        overridden: List[str] = []

        for path, content in combined.items():
            if path in base:
                overridden.append(path)
                if path == PACKAGE_MANIFEST:
                    content = merge_package_manifests(base[path], content)
            files[path] = content

        injected: List[str] = []
        if analysis is not None and PACKAGE_MANIFEST in files:
            files[PACKAGE_MANIFEST], injected = inject_dependencies(
                files[PACKAGE_MANIFEST],
                required_dependencies(analysis),
            )

        logger.info(
            "merge.files.completed",
            extra={
                "base_file_count": len(base),
                "generated_file_count": len(combined),
                "total_file_count": len(files),
                "overridden": len(overridden),
                "collisions": len(collisions),
                "injected_dependencies": injected,
            }
        )

        return MergeResult(
            files=files,
            collisions=collisions,
            overridden_paths=overridden,
            injected_dependencies=injected,
        )

    def merge(
        self,
        base: Mapping[str, str],
        generated: Sequence[Mapping[str, str]],
        analysis: Optional[AppAnalysis] = None,
    ) -> RawFileSet:
        return self.merge_files(base, generated, analysis).files


# Global instance
virtual_merger = VirtualMerger()


def merge(
    base: Mapping[str, str],
    generated: Sequence[Mapping[str, str]],
    analysis: Optional[AppAnalysis] = None,
) -> RawFileSet:
    return virtual_merger.merge(base, generated, analysis)
