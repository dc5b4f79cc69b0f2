import pytest

from engine.constants import AVATAR_COLORS
from engine.flow import lobby_ready_text, phase_text, should_show_proceed_button, should_show_ready_button
from engine.lobby import (
    add_player,
    avatar_color,
    can_start_game,
    default_player_name,
    is_name_taken,
    rejoin_player,
    remove_player,
    set_connected,
    update_player_name,
    update_player_ready,
    validate_player_name,
)
from engine.models import Phase, Token


def roster(*names):
    lobby = []
    for idx, name in enumerate(names):
        lobby = add_player(lobby, f"id{idx}", name, is_host=idx == 0)
    return lobby


@pytest.mark.parametrize(
    "name,valid",
    [("Ann", True), ("  Bo  ", True), ("", False), ("   ", False), ("x" * 20, True), ("x" * 21, False)],
)
def test_validate_player_name(name, valid):
    assert validate_player_name(name) is valid


def test_can_start_needs_two_ready_players():
    lobby = roster("Ann")
    lobby = update_player_ready(lobby, "id0", True)
    assert not can_start_game(lobby)
    lobby = add_player(lobby, "id1", "Bo")
    assert not can_start_game(lobby)
    lobby = update_player_ready(lobby, "id1", True)
    assert can_start_game(lobby)


def test_operations_return_new_lists():
    lobby = roster("Ann", "Bo")
    updated = update_player_ready(lobby, "id1", True)
    assert lobby[1].is_ready is False
    assert updated[1].is_ready is True
    assert remove_player(updated, "id0")[0].id == "id1"
    assert len(updated) == 2


def test_rename_ignored_while_ready():
    lobby = update_player_ready(roster("Ann", "Bo"), "id1", True)
    assert update_player_name(lobby, "id1", "Cy")[1].name == "Bo"
    assert update_player_name(lobby, "id0", "Cy")[0].name == "Cy"


def test_name_taken_is_case_insensitive():
    lobby = roster("Ann", "Bo")
    assert is_name_taken(lobby, "ann")
    assert is_name_taken(lobby, " BO ")
    assert not is_name_taken(lobby, "Ann", exclude_id="id0")
    assert not is_name_taken(lobby, "Cy")


def test_default_name_skips_taken():
    lobby = roster("Player 2")
    assert default_player_name(lobby) == "Player 3"


def test_disconnect_and_rejoin_keep_entry():
    lobby = update_player_ready(roster("Ann", "Bo"), "id1", True)
    lobby = set_connected(lobby, "id1", False)
    assert lobby[1].connected is False
    lobby = rejoin_player(lobby, "id1")
    assert lobby[1].connected is True
    assert lobby[1].is_ready is True
    assert lobby[1].name == "Bo"


def test_avatar_color_is_stable_palette_entry():
    assert avatar_color("peer-123") == avatar_color("peer-123")
    assert avatar_color("peer-123") in AVATAR_COLORS
    assert len({avatar_color(f"peer-{idx}") for idx in range(40)}) > 1


def test_phase_queries():
    assert phase_text(Phase.LOBBY) == "Waiting for players..."
    assert phase_text(Phase.END_GAME) == "Game Over"
    assert should_show_ready_button(Phase.READY_UP)
    assert not should_show_ready_button(Phase.TOKEN_TRADING)


def test_proceed_button_only_when_all_tokens_owned():
    owned = [Token(1, "a", 1), Token(2, "b", 2)]
    partial = [Token(1, "a", 1), Token(2)]
    assert should_show_proceed_button(Phase.TOKEN_TRADING, owned)
    assert not should_show_proceed_button(Phase.TOKEN_TRADING, partial)
    assert not should_show_proceed_button(Phase.TOKEN_TRADING)
    assert not should_show_proceed_button(Phase.READY_UP, owned)


def test_lobby_ready_text_counts_ready_players():
    lobby = update_player_ready(roster("Ann", "Bo", "Cy"), "id2", True)
    assert lobby_ready_text(lobby) == "Players Ready: 1 out of 3"
