"""
Tests for the path-keyed virtual merger.
"""
import json

import pytest

from builder.models.schemas.analysis import AppAnalysis, NavigationStyle
from builder.services.generation.virtual_merger import (
    VirtualMerger,
    inject_dependencies,
    merge,
    merge_package_manifests,
    required_dependencies,
)
from builder.services.templates.expo_base_template import expo_base_template

HEADER_V1 = "export default function Header() { return <Text>v1</Text>; }"
HEADER_V2 = "export default function Header() { return <Text>v2</Text>; }"
CARD = "export default function Card() { return <View />; }"


@pytest.fixture
def base():
    return expo_base_template.generate("Merge Test")


@pytest.fixture
def merger():
    return VirtualMerger()


def test_merge_with_no_generated_files_is_identity(base):
    assert merge(base, []) == base
    assert merge(base, [{}, {}]) == base


def test_merge_with_only_unusable_files_is_identity(base):
    assert merge(base, [{"components/Tiny.tsx": "  x  "}]) == base


def test_generated_overrides_base_and_base_only_files_survive(base):
    override = "export default function NotFound() { return null; }"

    merged = merge(base, [{"app/+not-found.tsx": override, "components/Card.tsx": CARD}])

    assert merged["app/+not-found.tsx"] == override
    assert merged["components/Card.tsx"] == CARD
    assert merged["components/ThemedText.tsx"] == base["components/ThemedText.tsx"]


def test_merge_is_idempotent(base):
    generated = [{"components/Card.tsx": CARD}, {"components/Header.tsx": HEADER_V1}]

    once = merge(base, generated)
    twice = merge(once, generated)

    assert twice == once


def test_later_chunk_wins_and_collision_is_recorded(base, merger):
    result = merger.merge_files(base, [
        {"components/Header.tsx": HEADER_V1},
        {"components/Card.tsx": CARD},
        {"components/Header.tsx": HEADER_V2},
    ])

    assert result.files["components/Header.tsx"] == HEADER_V2
    assert list(result.files).count("components/Header.tsx") == 1
    assert result.had_collisions
    assert len(result.collisions) == 1
    collision = result.collisions[0]
    assert (collision.path, collision.earlier_chunk, collision.later_chunk) == ("components/Header.tsx", 0, 2)


def test_overridden_paths_are_reported(base, merger):
    result = merger.merge_files(base, [{"app/+not-found.tsx": CARD, "components/Card.tsx": CARD}])

    assert result.overridden_paths == ["app/+not-found.tsx"]


def test_package_manifests_are_merged_field_wise():
    base_text = json.dumps({
        "name": "demo",
        "main": "expo-router/entry",
        "dependencies": {"expo": "~53.0.12", "react": "19.0.0"},
        "scripts": {"start": "expo start"},
    })
    generated_text = json.dumps({
        "name": "demo-app",
        "dependencies": {"zustand": "^5.0.0", "react": "19.0.0"},
        "devDependencies": {"typescript": "~5.8.3"},
    })

    merged = json.loads(merge_package_manifests(base_text, generated_text))

    assert merged["name"] == "demo-app"
    assert merged["main"] == "expo-router/entry"
    assert merged["dependencies"] == {"expo": "~53.0.12", "react": "19.0.0", "zustand": "^5.0.0"}
    assert merged["devDependencies"] == {"typescript": "~5.8.3"}
    assert merged["scripts"] == {"start": "expo start"}


def test_unparseable_generated_manifest_is_kept_verbatim():
    generated_text = "{ this is not json but long enough }"

    assert merge_package_manifests('{"name": "demo"}', generated_text) == generated_text


def test_generated_manifest_keeps_base_dependencies(base):
    generated = json.dumps({"dependencies": {"zustand": "^5.0.0"}})

    merged = merge(base, [{"package.json": generated}])

    dependencies = json.loads(merged["package.json"])["dependencies"]
    assert dependencies["zustand"] == "^5.0.0"
    assert dependencies["expo"] == json.loads(base["package.json"])["dependencies"]["expo"]


def test_required_dependencies_from_analysis():
    analysis = AppAnalysis(features=frozenset({"camera", "dark-mode"}), navigation=NavigationStyle.DRAWER)

    required = required_dependencies(analysis)

    assert required == {"expo-camera": "~15.0.0", "@react-navigation/drawer": "^7.3.9"}


def test_inject_dependencies_adds_missing_only_and_is_idempotent():
    manifest = json.dumps({"dependencies": {"expo-camera": "~16.0.0", "expo": "~53.0.12"}})
    packages = {"expo-camera": "~15.0.0", "expo-location": "~17.0.0"}

    text, added = inject_dependencies(manifest, packages)
    again, added_again = inject_dependencies(text, packages)

    dependencies = json.loads(text)["dependencies"]
    assert added == ["expo-location"]
    assert dependencies["expo-camera"] == "~16.0.0"
    assert list(dependencies) == sorted(dependencies)
    assert again == text
    assert added_again == []


def test_merge_injects_analysis_dependencies(base, merger):
    analysis = AppAnalysis(features=frozenset({"location"}), navigation=NavigationStyle.TABS)

    result = merger.merge_files(base, [{"components/Card.tsx": CARD}], analysis)

    dependencies = json.loads(result.files["package.json"])["dependencies"]
    assert "expo-location" in dependencies
    assert "expo-location" in result.injected_dependencies


def test_no_injection_without_generated_files(base, merger):
    analysis = AppAnalysis(features=frozenset({"location"}))

    result = merger.merge_files(base, [], analysis)

    assert result.files == base
    assert result.injected_dependencies == []
