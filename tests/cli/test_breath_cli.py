"""Tests for the breath CLI."""

from typer.testing import CliRunner

from cli.cli import app

runner = CliRunner()

ELIGIBLE = ["--age", "30", "--disclaimer", "--education-days-ago", "1", "--emergency-contact"]


def test_programs_lists_catalog():
    """Test that the programs table is printed."""
    result = runner.invoke(app, ["programs"])

    assert result.exit_code == 0
    assert "Training programs" in result.output
    assert "Intermediate" in result.output


def test_check_eligible_profile():
    """Test that a complete profile is approved."""
    result = runner.invoke(app, ["check", *ELIGIBLE])

    assert result.exit_code == 0
    assert "Ready for training" in result.output


def test_check_missing_age_fails():
    """Test that an unverified age exits with code 1."""
    result = runner.invoke(app, ["check", "--disclaimer", "--education-days-ago", "1"])

    assert result.exit_code == 1
    assert "Age verification required" in result.output


def test_simulate_completes_session():
    """Test a full simulated beginner session."""
    result = runner.invoke(app, ["simulate"])

    assert result.exit_code == 0
    assert "Reason: completed" in result.output
    assert "Rounds completed: 5" in result.output


def test_simulate_emergency_stop():
    """Test that --emergency-at aborts the simulated session."""
    result = runner.invoke(app, ["simulate", "--emergency-at", "65"])

    assert result.exit_code == 0
    assert "Reason: emergency_stop" in result.output
    assert "Rounds completed: 0" in result.output


def test_simulate_unsafe_program_is_refused():
    """Test that an over-ceiling program is refused without --clamp."""
    result = runner.invoke(app, ["simulate", "--program", "Advanced Endurance"])

    assert result.exit_code == 1
    assert "parameter_unsafe" in result.output


def test_simulate_clamps_unsafe_program():
    """Test that --clamp runs the program at the beginner ceiling."""
    result = runner.invoke(app, ["simulate", "--program", "Advanced Endurance", "--clamp"])

    assert result.exit_code == 0
    assert "Holds: 30s, 30s, 30s, 30s, 30s, 30s" in result.output


def test_simulate_ineligible_profile():
    """Test that the gate also guards simulations."""
    result = runner.invoke(app, ["simulate", "--no-disclaimer"])

    assert result.exit_code == 1
    assert "medical_disclaimer_required" in result.output


def test_simulate_unknown_program():
    """Test that unknown programs exit with code 2."""
    result = runner.invoke(app, ["simulate", "--program", "Nope"])

    assert result.exit_code == 2
    assert "Unknown program" in result.output


def test_simulate_cannot_declare_history():
    """Test that simulate has no flags to claim past sessions or a higher level."""
    result = runner.invoke(app, ["simulate", "--sessions", "50", "--best-hold", "60"])

    assert result.exit_code == 2


def test_simulate_always_runs_at_beginner_level():
    """Test that simulated sessions use the limits of a profile with no history."""
    result = runner.invoke(app, ["simulate", "--program", "Intermediate Foundation", "--clamp"])

    assert result.exit_code == 0
    assert "Level: Beginner" in result.output
    assert "Holds: 30s, 30s, 30s, 30s, 30s, 30s, 30s, 30s" in result.output
