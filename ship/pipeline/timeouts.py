from __future__ import annotations

# One `setup.py bdist_wheel` run
WHEEL_BUILD_TIMEOUT_SECONDS = 30 * 60.0

# One `twine upload` run covering every wheel of a release
UPLOAD_TIMEOUT_SECONDS = 30 * 60.0
