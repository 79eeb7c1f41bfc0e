"""Tests for user notifications and prompts."""

from unittest.mock import MagicMock, patch

from devsetup import prompts
from devsetup.models import Action, ActionPlan, ActionStep


def test_notify_error_goes_to_stderr(capsys):
    prompts.notify_error("Setup cannot continue: boom", hint="try again")
    captured = capsys.readouterr()
    assert "Error: Setup cannot continue: boom" in captured.err
    assert "try again" in captured.err
    assert captured.out == ""


class TestAcknowledgeMissingWinget:
    def test_without_tty_cancels(self, capsys):
        with patch("devsetup.prompts.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            assert prompts.acknowledge_missing_winget() is False
        assert "App Installer" in capsys.readouterr().err

    def test_open_store_chosen(self):
        question = MagicMock()
        question.ask.return_value = prompts.OPEN_STORE
        with patch("devsetup.prompts.sys.stdin") as stdin, patch(
            "questionary.select", return_value=question
        ) as select:
            stdin.isatty.return_value = True
            assert prompts.acknowledge_missing_winget() is True
        select.assert_called_once()

    def test_cancel_chosen(self):
        question = MagicMock()
        question.ask.return_value = None
        with patch("devsetup.prompts.sys.stdin") as stdin, patch(
            "questionary.select", return_value=question
        ):
            stdin.isatty.return_value = True
            assert prompts.acknowledge_missing_winget() is False


def test_open_store_page():
    with patch("devsetup.prompts.click.launch") as launch:
        prompts.open_app_installer_page()
    launch.assert_called_once_with(prompts.APP_INSTALLER_STORE_URI)


class TestConfirmPlan:
    def test_nothing_pending(self, git):
        plan = ActionPlan(steps=[ActionStep(git, Action.ALREADY_MET, "ok")])
        with patch("devsetup.prompts.click.confirm") as confirm:
            assert prompts.confirm_plan(plan) is True
        confirm.assert_not_called()

    def test_skip_confirmation(self, node):
        plan = ActionPlan(steps=[ActionStep(node, Action.INSTALL, "missing")])
        with patch("devsetup.prompts.click.confirm") as confirm:
            assert prompts.confirm_plan(plan, skip_confirmation=True) is True
        confirm.assert_not_called()

    def test_summary_and_answer(self, node, python_dep, capsys):
        plan = ActionPlan(
            steps=[
                ActionStep(node, Action.INSTALL, "missing"),
                ActionStep(python_dep, Action.REINSTALL, "old"),
            ]
        )
        with patch("devsetup.prompts.click.confirm", return_value=False):
            assert prompts.confirm_plan(plan) is False
        output = capsys.readouterr().out
        assert "To install:   1" in output
        assert "To reinstall: 1" in output
