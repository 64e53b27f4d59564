"""Allow running SkillGate as ``python -m skillgate``."""

from skillgate.cli import main

main()
