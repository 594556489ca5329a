"""
Generation services - planning, parsing, merging and structure fixing.
"""

from builder.services.generation.plan_builder import (
    plan_builder,
    PlanBuilder,
    build_plan,
)

from builder.services.generation.response_parser import (
    response_parser,
    ResponseParser,
    ParseFailure,
    ParseResult,
    ParseStrategy,
    guess_filename,
    normalize_path,
    parse,
)

from builder.services.generation.virtual_merger import (
    virtual_merger,
    VirtualMerger,
    MergeCollision,
    MergeResult,
    merge,
    merge_package_manifests,
)

from builder.services.generation.structure_fixer import (
    structure_fixer,
    StructureFixer,
    StructureFixResult,
    CriticalFileMissingAfterFix,
    PathMapping,
    analyze_project_structure,
    ensure_default_export,
    ensure_imports,
    fix_structure,
)

__all__ = [
    # Planning
    'plan_builder',
    'PlanBuilder',
    'build_plan',

    # Parsing
    'response_parser',
    'ResponseParser',
    'ParseFailure',
    'ParseResult',
    'ParseStrategy',
    'guess_filename',
    'normalize_path',
    'parse',

    # Merging
    'virtual_merger',
    'VirtualMerger',
    'MergeCollision',
    'MergeResult',
    'merge',
    'merge_package_manifests',

    # Structure fixing
    'structure_fixer',
    'StructureFixer',
    'StructureFixResult',
    'CriticalFileMissingAfterFix',
    'PathMapping',
    'analyze_project_structure',
    'ensure_default_export',
    'ensure_imports',
    'fix_structure',
]
