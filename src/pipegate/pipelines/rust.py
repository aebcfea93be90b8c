# pipelines/rust.py
# Rust project pipeline: fmt, build, clippy and test on ubuntu/macos/windows.
from __future__ import annotations

from ..dsl import pipeline, pwsh, sh
from ..guards import not_on, only_on, skip_on
from ..model import Platform, Step, TriggerKind, Workflow

NPCAP_SECRET = "NPCAP_OEM_URL"
NPCAP_SDK_URL = "https://npcap.com/dist/npcap-sdk-1.13.zip"
TOOLCHAIN = "stable"
COMPONENTS = ("rustfmt", "clippy")
LINUX_PACKAGES = ("libpcap-dev", "libasound2-dev", "libgtk-3-dev")

# Fork pull requests get no secrets, so Windows cannot install npcap there.
# Build, lint and test are skipped on that cell only.
trusted_on_windows = skip_on(Platform.WINDOWS, TriggerKind.PULL_REQUEST)


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def cargo_step(name: str, subcommand: str, args: str | None = None, **kwargs) -> Step:
    """Create a step that runs a cargo subcommand."""
    cmd = f"cargo {subcommand}"
    if args:
        cmd = f"{cmd} {args}"
    return sh(name, cmd, **kwargs)


def toolchain_step(toolchain: str = TOOLCHAIN, components=COMPONENTS) -> Step:
    parts = [f"rustup toolchain install {toolchain} --profile minimal"]
    if components:
        parts[0] += " --component " + ",".join(components)
    parts.append(f"rustup default {toolchain}")
    return sh("toolchain install", " && ".join(parts))


def linux_deps_step(packages=LINUX_PACKAGES) -> Step:
    return sh(
        "install Linux deps",
        "sudo apt-get update -y && sudo apt-get install -y " + " ".join(packages),
        when=only_on(Platform.LINUX),
    )


def windows_deps_step() -> Step:
    # publishes LIB through the run's env file for the cargo steps
    script = "\n".join([
        f'Invoke-WebRequest -Uri "{NPCAP_SDK_URL}" -OutFile "C:/npcap-sdk.zip"',
        "Expand-Archive -LiteralPath C:/npcap-sdk.zip -DestinationPath C:/npcap-sdk",
        'echo "LIB=C:/npcap-sdk/Lib/x64" >> $env:PIPEGATE_ENV',
        f"Invoke-WebRequest -Uri ${{{{ secrets.{NPCAP_SECRET} }}}} -OutFile C:/npcap-oem.exe",
        "C:/npcap-oem.exe /S",
    ])
    return pwsh(
        "install Windows deps",
        script,
        when=only_on(Platform.WINDOWS) & not_on(TriggerKind.PULL_REQUEST),
        secrets=[NPCAP_SECRET],
    )


# ---------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------

def rust_pipeline() -> Workflow:
    return pipeline(
        "Rust",
        sh("checkout", "git submodule update --init --recursive"),
        toolchain_step(),
        linux_deps_step(),
        windows_deps_step(),
        cargo_step("fmt check", "fmt", "--all -- --check"),
        cargo_step("build", "build", "--verbose", when=trusted_on_windows),
        cargo_step("lint", "clippy", "-- -D warnings", when=trusted_on_windows),
        cargo_step("test", "test", "--verbose", when=trusted_on_windows),
        env={"CARGO_TERM_COLOR": "always"},
        platforms=(Platform.LINUX, Platform.MACOS, Platform.WINDOWS),
        on={
            TriggerKind.PUSH: ["*"],
            TriggerKind.PULL_REQUEST: ["*"],
            TriggerKind.WORKFLOW_CALL: [],
        },
        fail_fast=True,
        required_secrets=[NPCAP_SECRET],
    )


def workflow() -> Workflow:
    return rust_pipeline()
