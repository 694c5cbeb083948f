#!/usr/bin/env python3
"""
Setup script for Image Skin.
Installs the package with its test extra and the Chromium browser Playwright drives.
"""

import subprocess
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent

CATEGORY_FOLDERS = ["wide", "tall", "square", "transparent"]


def run_command(cmd, description):
    """Run a command and report status."""
    print(f"\n📦 {description}...")
    try:
        result = subprocess.run(cmd, shell=True, check=True, capture_output=True, text=True, cwd=ROOT)
        print(f"✅ {description} completed")
        if result.stdout:
            print(result.stdout)
        return True
    except subprocess.CalledProcessError as e:
        print(f"❌ {description} failed")
        if e.stderr:
            print(e.stderr)
        return False


def main():
    print("🚀 Setting up Image Skin...")

    if sys.version_info < (3, 8):
        print("❌ Python 3.8+ required")
        sys.exit(1)

    if not run_command(
        f'{sys.executable} -m pip install -e ".[test]"',
        "Installing skin-proxy with Playwright and Pillow"
    ):
        sys.exit(1)

    if not run_command(
        f"{sys.executable} -m playwright install chromium",
        "Installing Chromium browser"
    ):
        sys.exit(1)

    images = ROOT / "images"
    for name in CATEGORY_FOLDERS:
        (images / name).mkdir(parents=True, exist_ok=True)
    print(f"\n🖼️  Drop replacement images into {images}/<{'|'.join(CATEGORY_FOLDERS)}>/")

    print("\n✅ Setup complete! You can now run:")
    print("   skin-proxy https://example.com --images ./images --screenshot")


if __name__ == "__main__":
    main()
