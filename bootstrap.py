#!/usr/bin/env python
"""
WhatsApp gateway development setup.

Creates a virtual environment, installs the project with its test extra,
writes a .env template, installs Playwright's Chromium and prepares the
session directories. Run from the repository root: python bootstrap.py
"""

import platform
import shutil
import subprocess
import sys
from pathlib import Path

MIN_PYTHON = (3, 10)
VENV_DIR = Path(".venv")


def print_step(message):
    """Print a formatted step message"""
    print(f"\n\033[1;34m>>> {message}\033[0m")


def run_command(command, cwd=None):
    """Run a shell command; True when it exits cleanly"""
    print(f"Running: {command}")
    result = subprocess.run(command, shell=True, cwd=cwd, capture_output=True, text=True)
    if result.returncode != 0:
        print(f"Error: {result.stderr.strip() or result.stdout.strip()}")
        return False
    return True


def venv_bin(name):
    folder = "Scripts" if platform.system() == "Windows" else "bin"
    return VENV_DIR / folder / name


def check_python():
    """Refuse interpreters older than the project supports"""
    print_step("Checking Python version")
    if sys.version_info < MIN_PYTHON:
        print(f"Python {'.'.join(map(str, MIN_PYTHON))}+ is required, found {platform.python_version()}")
        return False
    print(f"Using Python {platform.python_version()}")
    return True


def setup_env():
    """Set up the virtual environment"""
    print_step("Setting up Python virtual environment")

    if not VENV_DIR.exists() and not run_command(f'"{sys.executable}" -m venv {VENV_DIR}'):
        return False

    activate_path = venv_bin("activate")
    if not activate_path.exists():
        print(f"Error: Activation script not found at {activate_path}")
        return False

    print(f"Virtual environment ready. Activate with:\nsource {activate_path}")
    return True


def install_dependencies():
    """Install the project and its test extra, with uv when available"""
    print_step("Installing dependencies")

    if shutil.which("uv"):
        return run_command("uv sync --extra test")

    print("uv not found, falling back to pip")
    return run_command(f'"{venv_bin("python")}" -m pip install -e ".[test]"')


def create_env_file():
    """Create a template .env file if it doesn't exist"""
    print_step("Creating .env file template")

    if Path(".env").exists():
        print(".env file already exists, skipping")
        return True

    with open(".env.template", "w") as f:
        f.write("""# Core settings
PROJECT_NAME=WhatsApp Gateway
ENVIRONMENT=dev
LOG_LEVEL=INFO
LOG_DIR=logs
LOG_TO_FILE=True

# Server
HOST=0.0.0.0
PORT=3000
BASE_URL=http://localhost:3000
CORS_ORIGIN=*

# Security - Replace with a long random secret
MASTER_KEY=change-this-master-key
API_KEYS_FILE=api-keys.json
KEY_TOUCH_INTERVAL=60

# WhatsApp session
WHATSAPP_CLIENT_ID=whatsapp-qr-scanner
SESSION_DIR=.wwebjs_auth
CACHE_DIR=.wwebjs_cache
QR_PRINT_TERMINAL=True

# Browser - leave the path empty to auto-detect Chrome or Chromium
BROWSER_EXECUTABLE_PATH=
BROWSER_HEADLESS=True

# Limits and timeouts
MAX_UPLOAD_BYTES=16777216
WEBHOOK_TIMEOUT=10
PROFILE_PIC_TIMEOUT=5
REINIT_BASE_DELAY=2
REINIT_MAX_DELAY=30
LOGOUT_REINIT_DELAY=2
""")

    shutil.copy(".env.template", ".env")
    print(
        "Created .env file template. Please set MASTER_KEY before exposing the gateway."
    )
    return True


def install_browser():
    """Install the Chromium build driven by Playwright"""
    print_step("Installing Playwright Chromium")

    if not run_command(f"\"{venv_bin('playwright')}\" install chromium"):
        print("Could not install Chromium; set BROWSER_EXECUTABLE_PATH to a local Chrome instead")
    return True


def create_data_dirs():
    """Create session and cache directories"""
    print_step("Creating data directories")

    for name in (".wwebjs_auth", ".wwebjs_cache"):
        Path(name).mkdir(exist_ok=True)

    print("Data directories created")
    return True


def main():
    """Main setup function"""
    print("\n\033[1;32m=== WhatsApp Gateway Development Setup ===\033[0m\n")

    steps = [
        check_python,
        setup_env,
        install_dependencies,
        create_env_file,
        install_browser,
        create_data_dirs,
    ]

    success = True
    for step in steps:
        if not step():
            success = False
            break

    if success:
        print("\n\033[1;32mSetup completed successfully\033[0m")
        print("\nTo start the application:")
        if platform.system() == "Windows":
            print("1. .venv\\Scripts\\activate")
        else:
            print("1. source .venv/bin/activate")
        print("2. python run.py\n3. Scan the QR code shown in the terminal or on the dashboard")
        print("\nThe gateway will be available at http://localhost:3000")
        print("API documentation at http://localhost:3000/docs")
    else:
        print(
            "\n\033[1;31mSetup failed. Please resolve the issues and try again.\033[0m"
        )


if __name__ == "__main__":
    main()
