"""
Tests for the structure fixer and import resolver.
"""
import json
import posixpath

import pytest

from builder.models.schemas.files import FileKind
from builder.services.generation.structure_fixer import (
    CriticalFileMissingAfterFix,
    PathMapping,
    StructureFixer,
    analyze_project_structure,
    canonical_path,
    classify_file,
    ensure_default_export,
    ensure_imports,
    extract_imports,
    fix_structure,
    is_pinned,
)
from builder.services.templates.expo_base_template import expo_base_template

FOO = "export default function Foo() {\n  return <View><Text>Foo</Text></View>;\n}\n"
HOME = (
    "import React from 'react';\n"
    "import Foo from './Foo';\n"
    "\n"
    "export default function HomeScreen() {\n"
    "  return <Foo />;\n"
    "}\n"
)


def resolve_literal(importer: str, literal: str) -> str:
    return posixpath.normpath(posixpath.join(posixpath.dirname(importer), literal))


@pytest.fixture
def fixer():
    return StructureFixer(app_name="Fixer Test")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("path,content,expected", [
    ("package.json", "{}", FileKind.ROOT),
    ("logo.png", "binary", FileKind.ASSET),
    ("AppNavigator.tsx", "export default function AppNavigator() {}", FileKind.NAVIGATION),
    ("Root.tsx", "const Stack = createNativeStackNavigator();", FileKind.NAVIGATION),
    ("Profile.tsx", "export default function Profile() { return <SafeAreaView />; }", FileKind.SCREEN),
    ("Details.tsx", "const nav = useNavigation();", FileKind.SCREEN),
    ("apiConfig.ts", "export const x = 1;", FileKind.CONFIG),
    ("settings.ts", "export const APP_CONFIG = { debug: true };", FileKind.CONFIG),
    ("formatDate.ts", "export function formatDate() {}", FileKind.UTIL),
    ("math.ts", "export const add = (a: number, b: number) => a + b;", FileKind.UTIL),
    ("Badge.tsx", "export default () => <View />;", FileKind.COMPONENT),
    ("notes.md", "# Notes", FileKind.ROOT),
])
def test_classify_file(path, content, expected):
    assert classify_file(path, content) is expected


@pytest.mark.parametrize("path,kind,expected", [
    ("profile.tsx", FileKind.SCREEN, "screens/ProfileScreen.tsx"),
    ("HomeScreen.tsx", FileKind.SCREEN, "screens/HomeScreen.tsx"),
    ("user-settings.js", FileKind.SCREEN, "screens/UserSettingsScreen.js"),
    ("Foo.tsx", FileKind.COMPONENT, "components/Foo.tsx"),
    ("AppNavigator.tsx", FileKind.NAVIGATION, "navigation/AppNavigator.tsx"),
    ("src/lib/api.ts", FileKind.UTIL, "utils/api.ts"),
    ("img/logo.png", FileKind.ASSET, "assets/logo.png"),
    ("src/package.json", FileKind.ROOT, "package.json"),
    ("docs/notes.md", FileKind.ROOT, "docs/notes.md"),
])
def test_canonical_path(path, kind, expected):
    assert canonical_path(path, kind) == expected


@pytest.mark.parametrize("path,expected", [
    ("package.json", True),
    ("app/(tabs)/index.tsx", True),
    ("components/Foo.tsx", True),
    ("hooks/useThemeColor.ts", True),
    ("Foo.tsx", False),
    ("src/Foo.tsx", False),
])
def test_is_pinned(path, expected):
    assert is_pinned(path) is expected


def test_extract_imports():
    content = (
        "import React from 'react';\n"
        "import { a, b } from \"./lib\";\n"
        "import './styles.css';\n"
        "export { c } from '../c';\n"
        "const d = require('./d');\n"
        "const E = lazy(() => import('./E'));\n"
    )

    assert extract_imports(content) == ["react", "./lib", "./styles.css", "../c", "./d", "./E"]


def test_path_mapping_drops_ambiguous_identifiers():
    mapping = PathMapping({
        "Foo.tsx": "components/Foo.tsx",
        "a/Bar.ts": "utils/Bar.ts",
        "b/Bar.tsx": "components/Bar.tsx",
    })

    assert mapping.canonical("Foo") == "components/Foo.tsx"
    assert mapping.canonical("./Foo.tsx") == "components/Foo.tsx"
    assert mapping.lookup("../../Foo") == "Foo.tsx"
    assert "Bar" not in mapping
    assert mapping.lookup("./Bar") is None


# ---------------------------------------------------------------------------
# Relocation and import rewriting
# ---------------------------------------------------------------------------

def test_relocated_import_still_points_at_target(fixer):
    result = fixer.fix_structure_detailed({"Foo.tsx": FOO, "HomeScreen.tsx": HOME})

    assert result.relocations["Foo.tsx"] == "components/Foo.tsx"
    assert result.relocations["HomeScreen.tsx"] == "screens/HomeScreen.tsx"

    importer = result.files["screens/HomeScreen.tsx"]
    literal = next(p for p in extract_imports(importer) if p.startswith("."))
    assert literal == "../components/Foo"
    assert resolve_literal("screens/HomeScreen.tsx", literal) + ".tsx" == "components/Foo.tsx"
    assert "import React from 'react';" in importer


def test_guessed_import_is_resolved_through_the_mapping(fixer):
    home = HOME.replace("'./Foo'", "'./components/Foo'")

    files = fixer.fix_structure({"Foo.tsx": FOO, "HomeScreen.tsx": home})

    assert "from '../components/Foo'" in files["screens/HomeScreen.tsx"]


def test_extension_and_index_styles_are_preserved(fixer):
    widgets = "export default function Widgets() { return <View />; }"
    home = (
        "import Foo from './Foo.tsx';\n"
        "import Widgets from './components/widgets';\n"
        "export default function HomeScreen() { return <Foo />; }\n"
    )

    files = fixer.fix_structure({
        "Foo.tsx": FOO,
        "components/widgets/index.tsx": widgets,
        "HomeScreen.tsx": home,
    })

    importer = files["screens/HomeScreen.tsx"]
    assert "from '../components/Foo.tsx'" in importer
    assert "from '../components/widgets'" in importer
    assert files["components/widgets/index.tsx"] == widgets


def test_pinned_files_stay_put(fixer):
    screen = "export default function Tab() { const nav = useNavigation(); return <View />; }"

    files = fixer.fix_structure({
        "app/(tabs)/index.tsx": screen,
        "components/ProfileScreen.tsx": screen,
    })

    assert files["app/(tabs)/index.tsx"] == screen
    assert files["components/ProfileScreen.tsx"] == screen


def test_taken_target_keeps_original_path(fixer):
    header = "export default function Header() { return <View />; }"

    files = fixer.fix_structure({
        "components/Header.tsx": header,
        "Header.tsx": header.replace("View", "Text"),
    })

    assert "Header.tsx" in files
    assert files["components/Header.tsx"] == header


def test_package_imports_are_untouched(fixer):
    content = (
        "import { Stack } from 'expo-router';\n"
        "import Colors from '@/constants/Colors';\n"
        "export default function Widget() { return <Stack />; }\n"
    )

    files = fixer.fix_structure({"Widget.tsx": content})

    assert files["components/Widget.tsx"] == content


def test_fix_is_a_fixpoint(fixer):
    files = dict(expo_base_template.generate("Fixer Test"))
    files.update({"Foo.tsx": FOO, "HomeScreen.tsx": HOME, "formatDate.ts": "export const formatDate = (d: Date) => d.toISOString();"})

    once = fixer.fix_structure(files)
    twice = fixer.fix_structure(once)

    assert twice == once


def test_canonical_base_template_is_unchanged(fixer):
    base = expo_base_template.generate("Fixer Test")

    result = fixer.fix_structure_detailed(base)

    assert result.files == base
    assert result.moved == {}
    assert result.synthesized == []


# ---------------------------------------------------------------------------
# Critical files
# ---------------------------------------------------------------------------

def test_missing_critical_files_are_synthesized(fixer):
    result = fixer.fix_structure_detailed({"components/Card.tsx": FOO})

    assert set(result.synthesized) == {"app/_layout.tsx", "package.json", "app.json", "babel.config.js"}
    assert json.loads(result.files["package.json"])["name"]
    assert json.loads(result.files["app.json"])["expo"]["name"] == "Fixer Test"


def test_existing_entry_point_is_enough(fixer):
    entry = "import { registerRootComponent } from 'expo';\nregisterRootComponent(App);\n"

    result = fixer.fix_structure_detailed({"index.js": entry})

    assert "app/_layout.tsx" not in result.synthesized


def test_invalid_package_manifest_is_replaced(fixer):
    files = fixer.fix_structure({"package.json": "this is definitely not json"})

    assert isinstance(json.loads(files["package.json"]), dict)


def test_unsynthesizable_critical_file_raises():
    fixer = StructureFixer(critical_defaults={"babel.config.js": lambda name: ""})

    with pytest.raises(CriticalFileMissingAfterFix) as exc_info:
        fixer.fix_structure({})

    assert exc_info.value.missing == ["babel.config.js"]


def test_analyze_project_structure():
    summary = analyze_project_structure({
        "package.json": "{}",
        "components/Card.tsx": FOO,
        "components/Foo.tsx": FOO,
    })

    assert summary["total_files"] == 3
    assert summary["folders"] == {"components": 2, "root": 1}
    assert summary["file_kinds"] == {"component": 2, "root": 1}


def test_module_level_fix_structure():
    files = fix_structure({"Foo.tsx": FOO})

    assert "components/Foo.tsx" in files


# ---------------------------------------------------------------------------
# Content repairs
# ---------------------------------------------------------------------------

STATS_ROUTE = (
    "export default function Stats() {\n"
    "  const [count, setCount] = useState<number>(0);\n"
    "  useEffect(() => setCount(1), []);\n"
    "  return <ThemedText>{count}</ThemedText>;\n"
    "}\n"
)


def test_route_without_default_export_gets_one(fixer):
    route = "import { View } from 'react-native';\n\nexport function SettingsScreen() {\n  return <View />;\n}\n"

    result = fixer.fix_structure_detailed({"app/settings.tsx": route})

    assert result.files["app/settings.tsx"] == route.rstrip() + "\n\nexport default SettingsScreen;\n"
    assert result.repairs["app/settings.tsx"] == ["default-export"]


@pytest.mark.parametrize("path,content,component", [
    ("app/profile.tsx", "const Helper = () => null;\nfunction Profile() {\n  return <View />;\n}", "Profile"),
    ("app/(tabs)/index.tsx", "export function Home() {\n  return <View />;\n}", "Home"),
    ("app/about.jsx", "const Page = () => <View />;", "Page"),
    ("app/index.tsx", "function Home() {}\nexport { Home as default };", None),
    ("app/notes.tsx", "const styles = StyleSheet.create({});", None),
    ("components/Card.tsx", "export function Card() {\n  return <View />;\n}", None),
    ("app/+api.ts", "export function GET() {\n  return Response.json({});\n}", None),
])
def test_ensure_default_export(path, content, component):
    repaired = ensure_default_export(path, content)

    if component is None:
        assert repaired is None
    else:
        assert repaired == f"{content.rstrip()}\n\nexport default {component};\n"


def test_missing_hook_and_themed_imports_are_added(fixer):
    files = dict(expo_base_template.generate("Fixer Test"))
    files["app/(tabs)/stats.tsx"] = STATS_ROUTE

    result = fixer.fix_structure_detailed(files)

    assert result.files["app/(tabs)/stats.tsx"] == (
        "import { useState, useEffect } from 'react';\n"
        "import { ThemedText } from '../../components/ThemedText';\n"
        + STATS_ROUTE
    )
    assert result.repairs == {
        "app/(tabs)/stats.tsx": ["import:useState", "import:useEffect", "import:ThemedText"],
    }
    assert fixer.fix_structure(result.files) == result.files


def test_themed_import_matches_a_default_export():
    title = "export default function Title() {\n  return <ThemedText>Hi</ThemedText>;\n}\n"
    themed = "export default function ThemedText(props) {\n  return <Text {...props} />;\n}\n"

    content, added = ensure_imports("components/Title.tsx", title, {
        "components/Title.tsx": title,
        "components/ThemedText.tsx": themed,
    })

    assert content == "import ThemedText from './ThemedText';\n" + title
    assert added == ["ThemedText"]


@pytest.mark.parametrize("content", [
    "import React from 'react';\nexport default function C() {\n  const [a] = useState(1);\n  return <View />;\n}\n",
    "export default function C() {\n  const [a] = React.useState(1);\n  return <View />;\n}\n",
    "export default function C() {\n  return <ThemedView />;\n}\n",
    "import { ThemedView } from '@/components/ThemedView';\nexport default function C() {\n  return <ThemedView />;\n}\n",
])
def test_imports_left_alone(content):
    assert ensure_imports("components/C.tsx", content, {"components/C.tsx": content}) == (content, [])
