"""
End-to-end tests for the verification driver and the command line.

The driver is run against a fake crate: every external tool is answered by
one scripted runner shared by all wrapper modules.
"""

import json

import pytest
import sys
from pathlib import Path

from click.testing import CliRunner

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from cargo_verify import Backend, cli
from cargo_verify.backends import base, proptest
from cargo_verify.driver import VerificationDriver
from cargo_verify.errors import ConfigurationError
from cargo_verify.pipeline import symbols
from cargo_verify.toolchain import cargo, llvm
from cargo_verify.utils.config import Opt
from cargo_verify.utils.process import CommandResult
from cargo_verify.verification.status import Status

TARGET = "x86_64-unknown-linux-gnu"


class FakeToolchain:
    """Answers cargo, rustup, llvm-nm and klee for a crate named `foo`."""

    def __init__(self, crate: Path, klee_stderr: dict):
        self.crate = crate
        self.target_dir = crate / "target"
        self.klee_stderr = klee_stderr
        self.calls = []

    def __call__(self, argv, *, tool, cwd=None, env=None, encoding="utf-8"):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        stdout, stderr = "", ""

        if argv[:2] == ["cargo", "metadata"]:
            stdout = json.dumps({
                "packages": [{"name": "foo", "manifest_path": str(self.crate / "Cargo.toml")}],
                "target_directory": str(self.target_dir),
            })
        elif argv[:2] == ["rustup", "show"]:
            stdout = f"Default host: {TARGET}\n"
        elif argv[:2] == ["cargo", "build"]:
            deps = self.target_dir / TARGET / "debug" / "deps"
            deps.mkdir(parents=True, exist_ok=True)
            (deps / "foo-abc.bc").write_bytes(b"BC")
        elif argv[:2] == ["cargo", "test"]:
            stdout = "tests::t1: test\ntests::t2: test\n"
        elif argv[0] == "llvm-nm":
            stdout = (
                "0000 T main\n"
                "0010 t _ZN3foo5tests2t117h0000000000000001E\n"
                "0020 t _ZN3foo5tests2t217h0000000000000002E\n"
            )
        elif argv[0] == "klee":
            entry = argv[argv.index("--entry-point") + 1]
            stderr = self.klee_stderr[entry]

        return CommandResult(argv, stdout, stderr, 0)


def fake_demangle(name):
    return {
        "_ZN3foo5tests2t117h0000000000000001E": "foo::tests::t1::h0000000000000001",
        "_ZN3foo5tests2t217h0000000000000002E": "foo::tests::t2::h0000000000000002",
    }[name]


@pytest.fixture
def crate(tmp_path):
    path = tmp_path / "foo"
    path.mkdir()
    (path / "Cargo.toml").write_text('[package]\nname = "foo"\n')
    return path


def install(monkeypatch, tools):
    for module in (cargo, llvm, base, proptest):
        monkeypatch.setattr(module, "run_command", tools)
    monkeypatch.setattr(symbols, "demangle", fake_demangle)


VERIFIED = "KLEE: done: completed paths = 1\n"
FAILED = "KLEE: ERROR: src/lib.rs:3: abort failure\n"


class TestVerificationDriver:
    """Tests for VerificationDriver."""

    def test_rejects_invalid_options(self, crate):
        with pytest.raises(ConfigurationError):
            VerificationDriver(Opt(crate_path=crate, backend=Backend.SEAHORN, replay=1))

    def test_missing_tool(self, monkeypatch, crate):
        monkeypatch.setattr(base, "is_tool_available", lambda exe: False)
        driver = VerificationDriver(Opt(crate_path=crate))

        with pytest.raises(ConfigurationError, match="`klee`"):
            driver.check_tools()

    def test_main_verified(self, monkeypatch, crate):
        tools = FakeToolchain(crate, {"main": VERIFIED})
        install(monkeypatch, tools)
        lines = []

        status = VerificationDriver(Opt(crate_path=crate, jobs=1), echo=lines.append).run()

        assert status == Status.VERIFIED
        assert lines == ["test main ... ok", "test result: ok. 1 passed; 0 failed"]
        assert ["rustup", "show"] in tools.calls

    def test_tests_with_failure(self, monkeypatch, crate):
        tools = FakeToolchain(crate, {
            "_ZN3foo5tests2t117h0000000000000001E": VERIFIED,
            "_ZN3foo5tests2t217h0000000000000002E": FAILED,
        })
        install(monkeypatch, tools)
        lines = []
        driver = VerificationDriver(Opt(crate_path=crate, tests=True, jobs=2), echo=lines.append)

        status = driver.run()

        assert status == Status.ERROR
        assert (driver.summary.passes, driver.summary.fails) == (1, 1)
        assert "test tests::t2 ... Error" in lines
        assert lines[-1] == "test result: Error. 1 passed; 1 failed"

    def test_clean_first(self, monkeypatch, crate):
        tools = FakeToolchain(crate, {"main": VERIFIED})
        install(monkeypatch, tools)

        VerificationDriver(Opt(crate_path=crate, clean=True, jobs=1), echo=lambda line: None).run()

        assert tools.calls[0] == ["cargo", "clean"]

    def test_proptest_skips_bitcode(self, monkeypatch, crate):
        tools = FakeToolchain(crate, {})
        install(monkeypatch, tools)

        status = VerificationDriver(Opt(crate_path=crate, backend=Backend.PROPTEST)).run()

        assert status == Status.VERIFIED
        assert [c[:2] for c in tools.calls] == [["cargo", "metadata"], ["cargo", "test"]]


class TestCli:
    """Tests for the click command."""

    @pytest.fixture
    def runner(self):
        return CliRunner()

    def test_help(self, runner):
        result = runner.invoke(cli.cli, ["--help"])

        assert result.exit_code == 0
        assert "--backend" in result.output
        assert "--replay" in result.output

    def test_verified(self, runner, monkeypatch, crate):
        install(monkeypatch, FakeToolchain(crate, {"main": VERIFIED}))
        monkeypatch.setattr(base, "is_tool_available", lambda exe: True)

        result = runner.invoke(cli.cli, ["--path", str(crate), "-j", "1"])

        assert result.exit_code == 0
        assert "test main ... ok" in result.output
        assert "VERIFICATION_RESULT: Verified" in result.output

    def test_failure_exit_code(self, runner, monkeypatch, crate):
        install(monkeypatch, FakeToolchain(crate, {"main": FAILED}))
        monkeypatch.setattr(base, "is_tool_available", lambda exe: True)

        result = runner.invoke(cli.cli, ["--path", str(crate), "--jobs", "1"])

        assert result.exit_code == 1
        assert "VERIFICATION_RESULT: Error" in result.output

    def test_invalid_combination(self, runner, crate):
        result = runner.invoke(cli.cli, ["--path", str(crate), "-b", "seahorn", "-r"])

        assert result.exit_code == 1

    def test_config_file_and_override(self, runner, monkeypatch, crate, tmp_path):
        seen = {}

        class Recorder:
            def __init__(self, opt, echo):
                seen["opt"] = opt

            def check_tools(self):
                pass

            def run(self):
                return Status.VERIFIED

        monkeypatch.setattr(cli, "VerificationDriver", Recorder)
        config = tmp_path / "verify.yaml"
        config.write_text("backend: seahorn\njobs: 3\nfeatures: [std]\n")

        result = runner.invoke(cli.cli, [
            "--config", str(config), "--path", str(crate), "-j", "5", "--", "ignored-by-recorder",
        ])

        assert result.exit_code == 0
        opt = seen["opt"]
        assert opt.backend is Backend.SEAHORN
        assert opt.jobs == 5
        assert opt.features == ("std",)
        assert opt.crate_path == crate
        assert opt.args == ("ignored-by-recorder",)

    def test_bare_jobs_means_cpu_count(self, runner, monkeypatch, crate):
        seen = {}

        class Recorder:
            def __init__(self, opt, echo):
                seen["opt"] = opt

            def check_tools(self):
                pass

            def run(self):
                return Status.VERIFIED

        monkeypatch.setattr(cli, "VerificationDriver", Recorder)
        monkeypatch.setattr(cli, "default_jobs", lambda: 7)

        result = runner.invoke(cli.cli, ["--path", str(crate), "-j"])

        assert result.exit_code == 0
        assert seen["opt"].jobs == 7

    def test_zero_jobs_rejected(self, runner, monkeypatch, crate):
        monkeypatch.setattr(cli, "default_jobs", lambda: 7)

        result = runner.invoke(cli.cli, ["--path", str(crate), "-j", "0"])

        assert result.exit_code == 1
        assert "--jobs must be at least 1" in result.output
