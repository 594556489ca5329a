"""
Expo base template provider.

Produces a deterministic Expo Router starter project for an app name. Every
file is already at its canonical location and project imports use the '@/'
alias, so the structure fixer leaves the template untouched.

The default contents of the critical files are exposed separately so the
structure fixer can synthesize any that a generated project is missing.
"""
import json
import re
from typing import Any, Dict

from builder.config import settings
from builder.models.schemas.files import RawFileSet


EXPO_SDK_VERSION = "~53.0.12"
REACT_NATIVE_VERSION = "0.79.4"
REACT_VERSION = "19.0.0"

BASE_DEPENDENCIES: Dict[str, str] = {
    "@expo/vector-icons": "^14.1.0",
    "@react-navigation/bottom-tabs": "^7.3.10",
    "@react-navigation/elements": "^2.3.8",
    "@react-navigation/native": "^7.1.6",
    "@react-native-async-storage/async-storage": "2.1.2",
    "expo": EXPO_SDK_VERSION,
    "expo-constants": "~17.1.6",
    "expo-font": "~13.3.1",
    "expo-linking": "~7.1.5",
    "expo-router": "~5.1.0",
    "expo-splash-screen": "~0.30.9",
    "expo-status-bar": "~2.2.3",
    "expo-system-ui": "~5.0.9",
    "react": REACT_VERSION,
    "react-dom": REACT_VERSION,
    "react-native": REACT_NATIVE_VERSION,
    "react-native-gesture-handler": "~2.24.0",
    "react-native-reanimated": "~3.17.4",
    "react-native-safe-area-context": "5.4.0",
    "react-native-screens": "~4.11.1",
    "react-native-web": "~0.20.0",
}

BASE_DEV_DEPENDENCIES: Dict[str, str] = {
    "@babel/core": "^7.25.2",
    "@types/react": "~19.0.10",
    "eslint": "^9.25.0",
    "eslint-config-expo": "~9.2.0",
    "typescript": "~5.8.3",
}

BASE_SCRIPTS: Dict[str, str] = {
    "start": "expo start",
    "android": "expo start --android",
    "ios": "expo start --ios",
    "web": "expo start --web",
    "lint": "expo lint",
}


def slugify(app_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", app_name.lower()).strip("-")
    return slug or "expo-app"


def _json(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2) + "\n"


# ============================================================================
# CRITICAL FILE DEFAULTS
# ============================================================================

def default_package_json(app_name: str) -> str:
    return _json({
        "name": slugify(app_name),
        "main": "expo-router/entry",
        "version": "1.0.0",
        "private": True,
        "scripts": dict(BASE_SCRIPTS),
        "dependencies": dict(BASE_DEPENDENCIES),
        "devDependencies": dict(BASE_DEV_DEPENDENCIES),
    })


def default_app_json(app_name: str) -> str:
    slug = slugify(app_name)
    return _json({
        "expo": {
            "name": app_name,
            "slug": slug,
            "version": "1.0.0",
            "orientation": "portrait",
            "scheme": slug.replace("-", ""),
            "userInterfaceStyle": "automatic",
            "newArchEnabled": True,
            "ios": {"supportsTablet": True},
            "android": {"edgeToEdgeEnabled": True},
            "web": {"bundler": "metro", "output": "static"},
            "plugins": ["expo-router"],
            "experiments": {"typedRoutes": True},
        }
    })


def default_babel_config() -> str:
    return """module.exports = function (api) {
  api.cache(true);
  return {
    presets: ['babel-preset-expo'],
  };
};
"""


def default_root_layout() -> str:
    return """import { Stack } from 'expo-router';
import { StatusBar } from 'expo-status-bar';

export default function RootLayout() {
  return (
    <>
      <Stack screenOptions={{ headerShown: false }} />
      <StatusBar style="auto" />
    </>
  );
}
"""


# ============================================================================
# TEMPLATE FILES
# ============================================================================

_TSCONFIG = _json({
    "extends": "expo/tsconfig.base",
    "compilerOptions": {
        "strict": True,
        "baseUrl": ".",
        "paths": {"@/*": ["./*"]},
    },
    "include": ["**/*.ts", "**/*.tsx", ".expo/types/**/*.ts", "expo-env.d.ts"],
})

_ESLINT_CONFIG = """// https://docs.expo.dev/guides/using-eslint/
const { defineConfig } = require('eslint/config');
const expoConfig = require('eslint-config-expo/flat');

module.exports = defineConfig([
  expoConfig,
  {
    ignores: ['dist/*'],
  },
]);
"""

_GITIGNORE = """node_modules/
.expo/
dist/
web-build/
expo-env.d.ts

# native
*.orig.*
*.jks
*.p8
*.p12
*.key
*.mobileprovision

# debug
npm-debug.*
yarn-debug.*
yarn-error.*

.DS_Store
*.pem
.env*.local
*.tsbuildinfo
"""

_ROOT_LAYOUT = """import { DarkTheme, DefaultTheme, ThemeProvider } from '@react-navigation/native';
import { Stack } from 'expo-router';
import { StatusBar } from 'expo-status-bar';
import 'react-native-reanimated';

import { useColorScheme } from '@/hooks/useColorScheme';

export default function RootLayout() {
  const colorScheme = useColorScheme();

  return (
    <ThemeProvider value={colorScheme === 'dark' ? DarkTheme : DefaultTheme}>
      <Stack>
        <Stack.Screen name="(tabs)" options={{ headerShown: false }} />
        <Stack.Screen name="+not-found" />
      </Stack>
      <StatusBar style="auto" />
    </ThemeProvider>
  );
}
"""

_TABS_LAYOUT = """import { Tabs } from 'expo-router';
import Ionicons from '@expo/vector-icons/Ionicons';

import { Colors } from '@/constants/Colors';
import { useColorScheme } from '@/hooks/useColorScheme';

export default function TabLayout() {
  const colorScheme = useColorScheme();

  return (
    <Tabs
      screenOptions={{
        tabBarActiveTintColor: Colors[colorScheme ?? 'light'].tint,
        headerShown: false,
      }}>
      <Tabs.Screen
        name="index"
        options={{
          title: 'Home',
          tabBarIcon: ({ color }) => <Ionicons size={24} name="home" color={color} />,
        }}
      />
      <Tabs.Screen
        name="explore"
        options={{
          title: 'Explore',
          tabBarIcon: ({ color }) => <Ionicons size={24} name="compass" color={color} />,
        }}
      />
    </Tabs>
  );
}
"""

_HOME_SCREEN = """import { StyleSheet } from 'react-native';

import { ThemedText } from '@/components/ThemedText';
import { ThemedView } from '@/components/ThemedView';

export default function HomeScreen() {
  return (
    <ThemedView style={styles.container}>
      <ThemedText type="title">{app_name}</ThemedText>
      <ThemedText>Edit app/(tabs)/index.tsx to get started.</ThemedText>
    </ThemedView>
  );
}

const styles = StyleSheet.create({
  container: {
    flex: 1,
    alignItems: 'center',
    justifyContent: 'center',
    gap: 8,
    padding: 24,
  },
});
"""

_EXPLORE_SCREEN = """import { StyleSheet } from 'react-native';

import { ThemedText } from '@/components/ThemedText';
import { ThemedView } from '@/components/ThemedView';

export default function ExploreScreen() {
  return (
    <ThemedView style={styles.container}>
      <ThemedText type="title">Explore</ThemedText>
      <ThemedText>This app includes example code to help you get started.</ThemedText>
    </ThemedView>
  );
}

const styles = StyleSheet.create({
  container: {
    flex: 1,
    gap: 8,
    padding: 24,
    paddingTop: 64,
  },
});
"""

_NOT_FOUND_SCREEN = """import { Link, Stack } from 'expo-router';
import { StyleSheet } from 'react-native';

import { ThemedText } from '@/components/ThemedText';
import { ThemedView } from '@/components/ThemedView';

export default function NotFoundScreen() {
  return (
    <>
      <Stack.Screen options={{ title: 'Oops!' }} />
      <ThemedView style={styles.container}>
        <ThemedText type="title">This screen does not exist.</ThemedText>
        <Link href="/" style={styles.link}>
          <ThemedText type="link">Go to home screen!</ThemedText>
        </Link>
      </ThemedView>
    </>
  );
}

const styles = StyleSheet.create({
  container: {
    flex: 1,
    alignItems: 'center',
    justifyContent: 'center',
    padding: 20,
  },
  link: {
    marginTop: 15,
    paddingVertical: 15,
  },
});
"""

_THEMED_TEXT = """import { StyleSheet, Text, type TextProps } from 'react-native';

import { useThemeColor } from '@/hooks/useThemeColor';

export type ThemedTextProps = TextProps & {
  lightColor?: string;
  darkColor?: string;
  type?: 'default' | 'title' | 'defaultSemiBold' | 'subtitle' | 'link';
};

export function ThemedText({
  style,
  lightColor,
  darkColor,
  type = 'default',
  ...rest
}: ThemedTextProps) {
  const color = useThemeColor({ light: lightColor, dark: darkColor }, 'text');

  return (
    <Text
      style={[
        { color },
        type === 'default' ? styles.default : undefined,
        type === 'title' ? styles.title : undefined,
        type === 'defaultSemiBold' ? styles.defaultSemiBold : undefined,
        type === 'subtitle' ? styles.subtitle : undefined,
        type === 'link' ? styles.link : undefined,
        style,
      ]}
      {...rest}
    />
  );
}

const styles = StyleSheet.create({
  default: { fontSize: 16, lineHeight: 24 },
  defaultSemiBold: { fontSize: 16, lineHeight: 24, fontWeight: '600' },
  title: { fontSize: 32, fontWeight: 'bold', lineHeight: 32 },
  subtitle: { fontSize: 20, fontWeight: 'bold' },
  link: { lineHeight: 30, fontSize: 16, color: '#0a7ea4' },
});
"""

_THEMED_VIEW = """import { View, type ViewProps } from 'react-native';

import { useThemeColor } from '@/hooks/useThemeColor';

export type ThemedViewProps = ViewProps & {
  lightColor?: string;
  darkColor?: string;
};

export function ThemedView({ style, lightColor, darkColor, ...otherProps }: ThemedViewProps) {
  const backgroundColor = useThemeColor({ light: lightColor, dark: darkColor }, 'background');

  return <View style={[{ backgroundColor }, style]} {...otherProps} />;
}
"""

_COLORS = """const tintColorLight = '#0a7ea4';
const tintColorDark = '#fff';

export const Colors = {
  light: {
    text: '#11181C',
    background: '#fff',
    tint: tintColorLight,
    icon: '#687076',
    tabIconDefault: '#687076',
    tabIconSelected: tintColorLight,
  },
  dark: {
    text: '#ECEDEE',
    background: '#151718',
    tint: tintColorDark,
    icon: '#9BA1A6',
    tabIconDefault: '#9BA1A6',
    tabIconSelected: tintColorDark,
  },
};
"""

_USE_COLOR_SCHEME = """export { useColorScheme } from 'react-native';
"""

_USE_THEME_COLOR = """import { Colors } from '@/constants/Colors';
import { useColorScheme } from '@/hooks/useColorScheme';

export function useThemeColor(
  props: { light?: string; dark?: string },
  colorName: keyof typeof Colors.light & keyof typeof Colors.dark
) {
  const theme = useColorScheme() ?? 'light';
  const colorFromProps = props[theme];

  if (colorFromProps) {
    return colorFromProps;
  }
  return Colors[theme][colorName];
}
"""

_README = """# {app_name}

An [Expo](https://expo.dev) project using file-based routing.

## Get started

1. Install dependencies

   ```bash
   npm install
   ```

2. Start the app

   ```bash
   npx expo start
   ```
"""


class ExpoBaseTemplateProvider:
    """
    Deterministic Expo Router starter.

    Always succeeds and makes no network calls.
    """

    def generate(self, app_name: str = None) -> RawFileSet:
        name = (app_name or "").strip() or settings.default_app_name

        return {
            "package.json": default_package_json(name),
            "app.json": default_app_json(name),
            "tsconfig.json": _TSCONFIG,
            "babel.config.js": default_babel_config(),
            "eslint.config.js": _ESLINT_CONFIG,
            "README.md": _README.replace("{app_name}", name),
            ".gitignore": _GITIGNORE,
            "app/_layout.tsx": _ROOT_LAYOUT,
            "app/(tabs)/_layout.tsx": _TABS_LAYOUT,
            "app/(tabs)/index.tsx": _HOME_SCREEN.replace("{app_name}", name),
            "app/(tabs)/explore.tsx": _EXPLORE_SCREEN,
            "app/+not-found.tsx": _NOT_FOUND_SCREEN,
            "components/ThemedText.tsx": _THEMED_TEXT,
            "components/ThemedView.tsx": _THEMED_VIEW,
            "constants/Colors.ts": _COLORS,
            "hooks/useColorScheme.ts": _USE_COLOR_SCHEME,
            "hooks/useThemeColor.ts": _USE_THEME_COLOR,
        }


# Global instance
expo_base_template = ExpoBaseTemplateProvider()
