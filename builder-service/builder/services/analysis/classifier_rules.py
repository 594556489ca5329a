"""
Prompt classifier rule tables.

Every table is an ordered list of ``(tag, keywords)`` pairs evaluated top to
bottom; the first matching entry wins where a single answer is needed.

Keywords are regular-expression fragments anchored at the start of a word
(``"task"`` matches "tasks", ``r"store\\b"`` does not match "storage").
Plain alphabetic keywords also feed the typo-tolerant fuzzy pass.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

from builder.models.schemas.analysis import AppType, DataNeeds, NavigationStyle


Rule = Tuple[str, List[str]]


# ============================================================================
# APP CATEGORY (priority order)
# ============================================================================

APP_TYPE_RULES: List[Tuple[AppType, List[str]]] = [
    (AppType.TODO, ["todo", "to-do", "task", "checklist", r"to do list"]),
    (AppType.SOCIAL, ["social", "chat", "feed", "messag", "friend", "follower", "community", "dating"]),
    (AppType.ECOMMERCE, [
        "shop", r"store\b", r"stores\b", "ecommerce", "e-commerce", "marketplace",
        "product", r"cart\b", "checkout",
    ]),
    (AppType.FITNESS, ["fitness", "workout", "health", "exercise", r"gym\b", "calorie", "nutrition", r"diet\b"]),
    (AppType.FINANCE, ["financ", "budget", "money", "expense", r"bank", "invest", "wallet", "crypto"]),
    (AppType.PRODUCTIVITY, [
        "productiv", r"notes?\b", "note-taking", "planner", "schedul", "habit", "journal", "pomodoro",
    ]),
    (AppType.GAME, [r"game", "gaming", "puzzle", "quiz", "trivia", "arcade", "leaderboard"]),
    (AppType.UTILITY, [
        "calculator", "convert", "weather", "flashlight", "stopwatch", r"timer\b", "utility", r"tool\b",
    ]),
]


# ============================================================================
# COMPLEXITY
# ============================================================================

MEDIUM_WORD_COUNT = 20
COMPLEX_WORD_COUNT = 50
COMPLEX_FEATURE_COUNT = 4

# Any of these lifts a prompt to at least medium
COMPLEX_FEATURE_MARKERS: List[str] = [
    r"auth", "database", r"api\b", r"apis\b", "payment", "notification", "camera", "location",
]

# Any of these makes a prompt complex outright
COMPLEX_MARKERS: List[str] = ["advanced", "enterprise", r"complex\b"]


# ============================================================================
# FEATURES (independent of category)
# ============================================================================

FEATURE_RULES: List[Rule] = [
    ("authentication", [
        r"auth\b", "authenticat", "login", r"log in", r"sign in", r"sign up", "signup", "password",
    ]),
    ("payments", ["payment", r"pay\b", "stripe", "subscription", "checkout"]),
    ("offline-storage", ["offline", r"local storage", "persist", r"save locally"]),
    ("search", [r"search", r"filter"]),
    ("dark-mode", [r"dark mode", r"dark theme", r"light and dark"]),
    ("charts", [r"chart", r"graph", "statistic", "analytics"]),
    ("sharing", [r"share\b", "sharing"]),

    # Native device capabilities (see NATIVE_MODULES)
    ("camera", ["camera", "selfie", r"take (?:a )?(?:photo|picture)"]),
    ("imagepicker", [r"image picker", "gallery", r"photo library", r"pick (?:an )?image", r"upload (?:a )?(?:photo|image)"]),
    ("location", ["location", r"maps?\b", r"gps\b", "geolocat", "nearby", "coordinate"]),
    ("notifications", ["notification", r"push\b", "reminder", r"alerts?\b"]),
    ("audio", [r"audio", r"music", r"sound", "recording", "podcast", r"voice"]),
    ("filesystem", [r"file system", "filesystem", "download", r"documents?\b"]),
    ("sensors", [r"sensor", "accelerometer", "gyroscope", "pedometer", r"step count", r"shake"]),
    ("haptics", ["haptic", "vibrat"]),
    ("biometrics", ["biometric", "fingerprint", r"face id", r"touch id"]),
    ("barcode", ["barcode", r"qr\b", r"qr code", r"scan"]),
    ("contacts", [r"contacts\b", r"address book", r"phone book"]),
    ("calendar", ["calendar"]),
]


# ============================================================================
# SCREENS & COMPONENTS
# ============================================================================

BASE_SCREENS: List[str] = ["home"]

SCREENS_BY_TYPE: Dict[AppType, List[str]] = {
    AppType.TODO: ["add-task", "task-details"],
    AppType.SOCIAL: ["profile", "feed", "messages"],
    AppType.ECOMMERCE: ["products", "cart", "checkout"],
    AppType.FITNESS: ["workouts", "progress"],
    AppType.FINANCE: ["transactions", "budget"],
    AppType.PRODUCTIVITY: ["notes", "calendar"],
    AppType.GAME: ["game", "leaderboard"],
    AppType.UTILITY: ["settings"],
}

SCREENS_BY_FEATURE: Dict[str, List[str]] = {
    "authentication": ["login", "register"],
    "camera": ["camera"],
    "barcode": ["scanner"],
    "location": ["map"],
}

BASE_COMPONENTS: List[str] = ["Header", "Button", "Card"]

COMPONENTS_BY_TYPE: Dict[AppType, List[str]] = {
    AppType.TODO: ["TaskItem", "AddTaskForm"],
    AppType.SOCIAL: ["PostCard", "UserAvatar", "CommentSection"],
    AppType.ECOMMERCE: ["ProductCard", "CartItem", "PriceDisplay"],
    AppType.FITNESS: ["WorkoutCard", "ProgressRing"],
    AppType.FINANCE: ["TransactionItem", "BalanceCard"],
    AppType.PRODUCTIVITY: ["NoteCard", "DatePicker"],
    AppType.GAME: ["GameBoard", "ScoreBoard"],
    AppType.UTILITY: ["ResultDisplay", "InputPanel"],
}

COMPONENTS_BY_FEATURE: Dict[str, List[str]] = {
    "authentication": ["AuthForm"],
    "search": ["SearchBar"],
    "charts": ["ChartView"],
    "camera": ["CameraView"],
    "location": ["MapView"],
}


# ============================================================================
# NAVIGATION & DATA
# ============================================================================

NAVIGATION_RULES: List[Tuple[NavigationStyle, List[str]]] = [
    (NavigationStyle.DRAWER, ["drawer", "sidebar", r"side menu", "hamburger"]),
    (NavigationStyle.TABS, [r"tabs?\b", "tabbed", r"bottom nav"]),
    (NavigationStyle.STACK, [r"stack\b", r"single screen", r"one screen"]),
]

# Screen count thresholds used when no navigation keyword is present
STACK_MAX_SCREENS = 1
TABS_MAX_SCREENS = 4

DATA_NEEDS_RULES: List[Tuple[DataNeeds, List[str]]] = [
    (DataNeeds.DATABASE, ["database", "offline", r"sql", "firebase", "supabase", "sync"]),
    (DataNeeds.API, [r"api\b", r"apis\b", "backend", r"server\b", r"rest\b", "graphql", r"real-?time"]),
    (DataNeeds.LOCAL, [r"local storage", r"save\b", "persist", "asyncstorage", "history", "favorite"]),
]

# Features that imply a data layer when no data keyword is present
FEATURES_NEEDING_API = {"authentication", "payments", "sharing"}


# ============================================================================
# NATIVE MODULES
# ============================================================================

@dataclass(frozen=True)
class NativeModule:
    """Expo package backing a native device capability"""
    name: str
    package: str
    version: str
    permissions: Tuple[str, ...] = ()


NATIVE_MODULES: Dict[str, NativeModule] = {
    "camera": NativeModule("Camera", "expo-camera", "~15.0.0", ("CAMERA",)),
    "notifications": NativeModule("Push Notifications", "expo-notifications", "~0.28.0", ("NOTIFICATIONS",)),
    "location": NativeModule(
        "Location Services", "expo-location", "~17.0.0",
        ("ACCESS_FINE_LOCATION", "ACCESS_COARSE_LOCATION"),
    ),
    "imagepicker": NativeModule("Image Picker", "expo-image-picker", "~15.0.0", ("CAMERA_ROLL",)),
    "audio": NativeModule("Audio/Video", "expo-av", "~14.0.0", ("RECORD_AUDIO",)),
    "filesystem": NativeModule(
        "File System", "expo-file-system", "~17.0.0",
        ("READ_EXTERNAL_STORAGE", "WRITE_EXTERNAL_STORAGE"),
    ),
    "sensors": NativeModule("Device Sensors", "expo-sensors", "~13.0.0"),
    "haptics": NativeModule("Haptic Feedback", "expo-haptics", "~13.0.0", ("VIBRATE",)),
    "biometrics": NativeModule(
        "Biometric Auth", "expo-local-authentication", "~14.0.0",
        ("USE_BIOMETRIC", "USE_FINGERPRINT"),
    ),
    "barcode": NativeModule("Barcode Scanner", "expo-barcode-scanner", "~13.0.0", ("CAMERA",)),
    "contacts": NativeModule("Device Contacts", "expo-contacts", "~13.0.0", ("READ_CONTACTS",)),
    "calendar": NativeModule("Calendar Events", "expo-calendar", "~13.0.0", ("READ_CALENDAR", "WRITE_CALENDAR")),
}

# Navigation libraries required by each navigation shell
NAVIGATION_PACKAGES: Dict[NavigationStyle, Dict[str, str]] = {
    NavigationStyle.TABS: {"@react-navigation/bottom-tabs": "^7.3.10"},
    NavigationStyle.DRAWER: {"@react-navigation/drawer": "^7.3.9"},
    NavigationStyle.MIXED: {
        "@react-navigation/bottom-tabs": "^7.3.10",
        "@react-navigation/drawer": "^7.3.9",
    },
    NavigationStyle.STACK: {},
}


# ============================================================================
# FUZZY MATCHING
# ============================================================================

FUZZY_MIN_SCORE = 85
FUZZY_MIN_WORD_LENGTH = 4
