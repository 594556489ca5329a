"""
Tests for the rule-based prompt classifier.
"""
import pytest

from builder.models.schemas.analysis import AppType, ComplexityLevel, DataNeeds, NavigationStyle
from builder.services.analysis.classifier_rules import APP_TYPE_RULES, FEATURE_RULES
from builder.services.analysis.prompt_classifier import (
    PromptClassifier,
    classify,
    extract_app_name,
    ordered_features,
)


@pytest.mark.parametrize("prompt", ["", None, "   ", "!!!", "?" * 500])
def test_classifier_is_total(prompt):
    analysis = classify(prompt)

    assert analysis.type in set(AppType)
    assert analysis.complexity in set(ComplexityLevel)
    assert analysis.screens
    assert analysis.components


def test_unmatched_prompt_is_other_and_simple():
    analysis = classify("hello there")

    assert analysis.type is AppType.OTHER
    assert analysis.complexity is ComplexityLevel.SIMPLE
    assert analysis.features == frozenset()
    assert analysis.navigation is NavigationStyle.STACK
    assert analysis.data_needs is DataNeeds.NONE


def test_todo_app():
    analysis = classify("Create a todo app")

    assert analysis.type is AppType.TODO
    assert analysis.complexity is ComplexityLevel.SIMPLE
    assert analysis.screens == ("home", "add-task", "task-details")
    assert "TaskItem" in analysis.components
    assert analysis.navigation is NavigationStyle.TABS
    assert analysis.data_needs is DataNeeds.LOCAL


@pytest.mark.parametrize("prompt,expected", [
    ("A social feed for my friends", AppType.SOCIAL),
    ("An online store for sneakers", AppType.ECOMMERCE),
    ("Track my workouts at the gym", AppType.FITNESS),
    ("Monthly budget and expense tracker", AppType.FINANCE),
    ("A note taking app", AppType.PRODUCTIVITY),
    ("A trivia quiz with a leaderboard", AppType.GAME),
    ("A unit converter calculator", AppType.UTILITY),
])
def test_app_type_rules(prompt, expected):
    assert classify(prompt).type is expected


def test_category_priority_order():
    # "task" (todo) outranks "friends" (social)
    assert classify("share tasks with friends").type is AppType.TODO


def test_storage_does_not_match_store():
    assert classify("an app with local storage").type is not AppType.ECOMMERCE


def test_misspelt_category_uses_fuzzy_fallback():
    assert classify("build a wrokout tracker").type is AppType.FITNESS


def test_features_are_independent_of_category():
    analysis = classify("a puzzle game with camera and dark mode")

    assert analysis.type is AppType.GAME
    assert {"camera", "dark-mode"} <= analysis.features
    assert "camera" in analysis.screens


def test_authentication_adds_screens_and_api():
    analysis = classify("a social app with login")

    assert analysis.has_feature("authentication")
    assert "login" in analysis.screens and "register" in analysis.screens
    assert analysis.data_needs is DataNeeds.API
    assert analysis.navigation is NavigationStyle.MIXED


@pytest.mark.parametrize("prompt,expected", [
    ("a todo list", ComplexityLevel.SIMPLE),
    ("a todo list with push notifications", ComplexityLevel.MEDIUM),
    ("an advanced todo list", ComplexityLevel.COMPLEX),
    ("todo " + "word " * 60, ComplexityLevel.COMPLEX),
])
def test_complexity(prompt, expected):
    assert classify(prompt).complexity is expected


def test_four_features_make_a_complex_app():
    analysis = classify("notes with search, charts, calendar and reminders")

    assert len(analysis.features) >= 4
    assert analysis.complexity is ComplexityLevel.COMPLEX


def test_navigation_keyword_wins():
    assert classify("a todo app with a side menu").navigation is NavigationStyle.DRAWER
    assert classify("a calculator with bottom tabs").navigation is NavigationStyle.TABS


@pytest.mark.parametrize("prompt,expected", [
    ("a todo app that works offline", DataNeeds.DATABASE),
    ("a weather app using a rest api", DataNeeds.API),
    ("a calculator that saves history", DataNeeds.LOCAL),
])
def test_data_needs(prompt, expected):
    assert classify(prompt).data_needs is expected


def test_ordered_features_follow_rule_table():
    analysis = classify("calendar with camera and login")
    order = [tag for tag, _ in FEATURE_RULES]

    features = ordered_features(analysis)
    assert features == sorted(features, key=order.index)


def test_rule_tables_cover_every_category_but_other():
    covered = {tag for tag, _ in APP_TYPE_RULES}
    assert covered == set(AppType) - {AppType.OTHER}


def test_fuzzy_fallback_can_be_disabled():
    classifier = PromptClassifier(fuzzy_min_word_length=50)
    assert classifier.classify("build a wrokout tracker").type is AppType.OTHER


@pytest.mark.parametrize("prompt,app_type,expected", [
    ('Create an app called "Pocket Chef"', None, "Pocket Chef"),
    ("A notes app named Scribble", AppType.PRODUCTIVITY, "Scribble"),
    ("A finance tracker called Money Jar 2", AppType.FINANCE, "Money Jar 2"),
    ("A todo app named after my dog", AppType.TODO, "Todo App"),
    ("a game called something fun", None, "ExpoApp"),
    ("Create a todo app", AppType.TODO, "Todo App"),
    ("An online store", AppType.ECOMMERCE, "Shop App"),
    ("", None, "ExpoApp"),
    (None, AppType.OTHER, "ExpoApp"),
])
def test_extract_app_name(prompt, app_type, expected):
    assert extract_app_name(prompt, app_type) == expected
