from __future__ import annotations

import random
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .cards import create_deck, deal_community_cards, deal_hole_cards, random_card_back_color, shuffle_deck
from .constants import MAX_PLAYERS, MIN_PLAYERS, TOTAL_TURNS
from .evaluator import evaluate_seven
from .models import GameState, Phase, Player, TokenAction
from .scoring import PlayerHand, WinLossResult, determine_win_loss
from .tokens import generate_tokens, initial_token_history, reset_tokens, resolve_token_action, update_token_history

# Phase transitions for one match. Each function takes a GameState and
# returns a new one; a transition whose guard fails returns the same object.


def create_initial_state(players: Sequence[Player], rng: Optional[random.Random] = None) -> GameState:
    if len(players) < MIN_PLAYERS or len(players) > MAX_PLAYERS:
        raise ValueError(f"Player count must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    return GameState(
        phase=Phase.LOBBY,
        turn=0,
        players=tuple(Player(id=p.id, name=p.name, avatar_color=p.avatar_color) for p in players),
        deck=tuple(create_deck()),
        card_back_color=random_card_back_color(rng),
    )


def start_game(state: GameState, rng: Optional[random.Random] = None) -> GameState:
    """LOBBY -> READY_UP: shuffle, deal hole cards and the turn-1 community cards."""
    if state.phase != Phase.LOBBY:
        return state

    deck = shuffle_deck(create_deck(), rng)
    hole_cards, deck = deal_hole_cards(deck, len(state.players))
    community, deck = deal_community_cards(deck, 1)

    players = tuple(
        replace(player, hole_cards=tuple(cards), token_history=initial_token_history(), stolen_by=None)
        for player, cards in zip(state.players, hole_cards)
    )
    return replace(
        state,
        phase=Phase.READY_UP,
        turn=1,
        players=players,
        deck=tuple(deck),
        community_cards=tuple(community),
        tokens=generate_tokens(len(players)),
        ready_status=_fresh_readiness(players),
    )


def set_player_ready(state: GameState, player_id: str, ready: bool) -> GameState:
    ready_status = dict(state.ready_status)
    ready_status[player_id] = ready
    return replace(state, ready_status=ready_status)


def all_players_ready(state: GameState) -> bool:
    return all(state.ready_status.get(player.id) is True for player in state.players)


def all_tokens_owned(state: GameState) -> bool:
    return all(token.owner_id is not None for token in state.tokens)


def handle_token_action(state: GameState, action: TokenAction) -> GameState:
    """Resolve a token select during TOKEN_TRADING and track who was robbed by whom."""
    if state.phase != Phase.TOKEN_TRADING:
        return state

    result = resolve_token_action(state.tokens, action)
    acquired = any(token.owner_id == action.player_id for token in result.tokens)

    players = []
    for player in state.players:
        if player.id == result.stolen_from_id:
            player = replace(player, stolen_by=result.stolen_by_id)
        elif player.id == action.player_id and acquired:
            player = replace(player, stolen_by=None)
        players.append(player)

    return replace(state, tokens=result.tokens, players=tuple(players))


def record_token_history(state: GameState) -> tuple:
    players = []
    for player in state.players:
        owned = state.token_owned_by(player.id)
        history = update_token_history(
            player.token_history or initial_token_history(),
            state.turn,
            owned.number if owned else None,
        )
        players.append(replace(player, token_history=history))
    return tuple(players)


def advance_phase(state: GameState) -> GameState:
    if state.phase == Phase.READY_UP:
        if not all_players_ready(state):
            return state
        return replace(state, phase=Phase.TOKEN_TRADING)

    if state.phase == Phase.TOKEN_TRADING:
        if not all_tokens_owned(state):
            return state
        players = tuple(replace(player, stolen_by=None) for player in record_token_history(state))

        if state.turn >= TOTAL_TURNS:
            # Final ownership stays on the table for the showdown.
            return replace(
                state,
                phase=Phase.END_GAME,
                players=players,
                ready_status=_fresh_readiness(players),
            )

        community, deck = deal_community_cards(state.deck, state.turn + 1)
        return replace(
            state,
            phase=Phase.READY_UP,
            turn=state.turn + 1,
            players=players,
            deck=tuple(deck),
            community_cards=state.community_cards + tuple(community),
            tokens=reset_tokens(state.tokens),
            ready_status=_fresh_readiness(players),
        )

    # LOBBY uses start_game, END_GAME uses reset_for_next_game.
    return state


def reset_for_next_game(state: GameState, rng: Optional[random.Random] = None) -> GameState:
    """END_GAME -> READY_UP of a fresh match with the same players."""
    if state.phase != Phase.END_GAME:
        return state
    players = [Player(id=p.id, name=p.name, avatar_color=p.avatar_color) for p in state.players]
    return start_game(create_initial_state(players, rng), rng)


def showdown_hands(state: GameState) -> List[PlayerHand]:
    hands: List[PlayerHand] = []
    for player in state.players:
        cards = list(player.hole_cards) + list(state.community_cards)
        token = _final_token(state, player)
        if token is None:
            raise ValueError(f"Player {player.id} holds no token for the showdown")
        hands.append(PlayerHand(player_id=player.id, name=player.name, hand=evaluate_seven(cards), current_token=token))
    return hands


def evaluate_showdown(state: GameState) -> WinLossResult:
    if state.phase != Phase.END_GAME:
        raise ValueError("Showdown is only available at END_GAME")
    return determine_win_loss(showdown_hands(state))


def _final_token(state: GameState, player: Player) -> Optional[int]:
    if len(player.token_history) >= TOTAL_TURNS and player.token_history[TOTAL_TURNS - 1] is not None:
        return player.token_history[TOTAL_TURNS - 1]
    owned = state.token_owned_by(player.id)
    return owned.number if owned else None


def _fresh_readiness(players: Sequence[Player]) -> Dict[str, bool]:
    return {player.id: False for player in players}
