import random

from category_game.models import Category
from category_game.services.games.categories import PRESET_CATEGORIES, CategorySelector, clean_category


def test_clean_category_trims_and_lowercases():
    assert clean_category('  Kitchen Tools ') == 'kitchen tools'
    assert clean_category(None) == ''


def test_player_categories_are_drawn_before_presets(service):
    game_id = service.store.create_game('ABCD', 'gm')
    selector = CategorySelector(service.store, random.Random(3))
    assert selector.seed_presets(game_id) == len(PRESET_CATEGORIES)
    selector.submit(game_id, None, 'rivers')
    selector.submit(game_id, None, 'birds')

    first = selector.select_next(game_id)
    second = selector.select_next(game_id)
    assert {first, second} == {'rivers', 'birds'}
    assert selector.select_next(game_id) in PRESET_CATEGORIES


def test_selected_category_is_never_drawn_again(service):
    game_id = service.store.create_game('ABCD', 'gm')
    selector = CategorySelector(service.store, random.Random(1))
    selector.seed_presets(game_id)
    drawn = [selector.select_next(game_id) for _ in PRESET_CATEGORIES]
    assert sorted(drawn) == sorted(PRESET_CATEGORIES)
    assert selector.select_next(game_id) is None
    assert Category.query.filter_by(game_id=game_id, was_used=False).count() == 0


def test_pools_are_per_game(service):
    first_game = service.store.create_game('ABCD', 'gm')
    second_game = service.store.create_game('WXYZ', 'gm2')
    selector = CategorySelector(service.store, random.Random(0))
    selector.submit(first_game, None, 'rivers')
    assert selector.select_next(second_game) is None
    assert selector.select_next(first_game) == 'rivers'


def test_no_game_means_no_category(service):
    assert CategorySelector(service.store).select_next(None) is None
