"""
Modules inside the tracker package import each other relatively.
"""

from pathlib import Path

import tracker

PACKAGE_ROOT = Path(tracker.__file__).parent


def test_no_absolute_self_imports():
    offenders = [
        f"{path.relative_to(PACKAGE_ROOT)}:{number}"
        for path in sorted(PACKAGE_ROOT.rglob("*.py"))
        for number, line in enumerate(path.read_text().splitlines(), start=1)
        if line.lstrip().startswith(("from tracker.", "import tracker"))
    ]
    assert offenders == []
