"""Tests for the terminal client helpers."""

import pytest

from yconnect.cli import load_board, prompt_for_move, render_board
from yconnect.client import PlayerRole
from yconnect.coordinator import Outcome, TurnCoordinator, TurnState
from yconnect.core import BoardGraph

from tests.test_coordinator import FakeRemote


def write_ring(directory):
    """Write a 24-node ring as coordinates.txt / adjacency.txt."""
    coordinates = directory / "coordinates.txt"
    adjacency = directory / "adjacency.txt"
    coordinates.write_text("\n".join(f"{i} 0" for i in range(24)))
    adjacency.write_text("\n".join(f"{i % 24 + 1} {(i - 2) % 24 + 1}" for i in range(1, 25)))
    return coordinates, adjacency


def feed_input(monkeypatch, lines):
    """Answer input() with the given lines, then raise EOFError."""
    queue = list(lines)

    def fake_input(prompt=""):
        if not queue:
            raise EOFError()
        return queue.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)


class TestRenderBoard:

    @pytest.mark.asyncio
    async def test_marks_claims(self):
        """Test claimed nodes show the owner's mark."""
        coordinator = TurnCoordinator(FakeRemote(PlayerRole.FIRST, moves=[2]), BoardGraph.triangle(), poll_interval=0)
        await coordinator.start()
        await coordinator.submit_move(1)
        await coordinator.poll_remote_move()

        text = render_board(coordinator)

        assert "  1:A" in text
        assert "  2:B" in text
        assert "  3:." in text
        assert text.endswith("You are A (blue)")
        assert len(text.splitlines()) == 6


class TestPromptForMove:
    """Tests for reading moves from stdin."""

    @pytest.mark.asyncio
    async def test_skips_garbage(self, monkeypatch, capsys):
        feed_input(monkeypatch, ["abc", " 7 "])
        coordinator = TurnCoordinator(FakeRemote(PlayerRole.FIRST), BoardGraph.triangle(), poll_interval=0)
        await coordinator.start()

        assert await prompt_for_move(coordinator) == 7
        assert "Invalid node ID" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_end_of_input_abandons(self, monkeypatch):
        """Test Ctrl-D at the prompt ends the game cleanly."""
        feed_input(monkeypatch, [])
        remote = FakeRemote(PlayerRole.FIRST)
        coordinator = TurnCoordinator(remote, BoardGraph.triangle(), poll_interval=0)

        outcome = await coordinator.run(prompt_for_move)

        assert outcome is Outcome.ABANDONED
        assert coordinator.state is TurnState.GAME_OVER
        assert remote.pushed == []
        assert remote.closed


class TestLoadBoard:

    def test_default_is_triangle(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert len(load_board([])) == 45

    def test_from_files(self, tmp_path):
        coordinates, adjacency = write_ring(tmp_path)

        board = load_board([str(coordinates), str(adjacency)])

        assert len(board) == 24
        assert board.neighbors(1) == {2, 24}

    def test_files_in_working_directory(self, tmp_path, monkeypatch):
        """Test coordinates.txt and adjacency.txt are picked up when both exist."""
        write_ring(tmp_path)
        monkeypatch.chdir(tmp_path)

        board = load_board([])

        assert len(board) == 24

    def test_single_file_falls_back_to_triangle(self, tmp_path, monkeypatch):
        (tmp_path / "coordinates.txt").write_text("0 0\n")
        monkeypatch.chdir(tmp_path)

        assert len(load_board([])) == 45
