"""
Prompt templates for the completion provider.

The system prompt is shared verbatim by every chunk of a plan and states the
output contract the response parser expects:
a single JSON object {"files": {...}} (preferred) or ===FILE: ... ===END=== blocks.
"""

from typing import Any, Tuple
from dataclasses import dataclass
from enum import Enum


@dataclass
class PromptTemplate:
    """
    Reusable prompt template with system and user components.
    """
    system: str
    user_template: str

    def format(self, **kwargs: Any) -> Tuple[str, str]:
        return self.system.format(**kwargs), self.user_template.format(**kwargs)

    def format_system(self, **kwargs: Any) -> str:
        return self.system.format(**kwargs)

    def format_user(self, **kwargs: Any) -> str:
        return self.user_template.format(**kwargs)


class PromptType(str, Enum):
    APP_SKELETON = "app_skeleton"


class PromptLibrary:
    """
    Collection of prompt templates used by the plan builder.
    """

    # ======================================================================
    # SHARED OUTPUT CONTRACT
    # ======================================================================

    OUTPUT_FORMAT_RULES = """
OUTPUT FORMAT (MANDATORY):
Return ONE JSON object and nothing else:

{{"files": {{"<relative/path.tsx>": "<complete file content>", ...}}}}

- Paths are relative, use forward slashes and include the extension
- Each value is the COMPLETE file content as a JSON string
- NO markdown, NO explanations, NO text before or after the JSON

If you cannot produce JSON, use this block format for EVERY file instead:

===FILE: relative/path.tsx===
<complete file content>
===END===
"""

    CODE_RULES = """
RULES:
1. Generate production-ready, clean TypeScript code
2. Follow Expo Router conventions (files under app/ are routes)
3. Import project files with the '@/' alias (e.g. '@/components/ThemedText')
4. Reuse the existing themed components (ThemedText, ThemedView)
5. Every screen and component has a default export
6. Add loading and error states where data is fetched
7. Only generate the files you are asked for
"""

    # ======================================================================
    # APP SKELETON GENERATION
    # ======================================================================

    APP_SKELETON = PromptTemplate(
        system="""
You are a React Native code generator for Expo mobile apps.

CONTEXT: The project already contains a working Expo base template:
- Expo Router (app/ directory routing)
- React Native 0.79 + Expo SDK 53
- Themed components (ThemedText, ThemedView)
- TypeScript with the '@/' path alias

Existing base files (do not regenerate unless asked):
{base_files}

ANALYSIS:
- App name: {app_name}
- App type: {app_type}
- Complexity: {complexity}
- Navigation: {navigation}
- Data needs: {data_needs}
- Features: {features}
- Screens: {screens}
- Components: {components}

NATIVE MODULES (already installed, use these packages):
{native_modules}
""" + CODE_RULES + OUTPUT_FORMAT_RULES,
        user_template="""
App request:
"{prompt}"

Part {chunk_index} of {chunk_count}: {chunk_name}
{task}

Generate exactly these files:
{target_files}
"""
    )

    def get(self, prompt_type: PromptType) -> PromptTemplate:
        if prompt_type is PromptType.APP_SKELETON:
            return self.APP_SKELETON
        raise KeyError(f"Unknown prompt type: {prompt_type}")
