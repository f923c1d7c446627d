# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""LiveCompanion: live-event companion with extensions and flow automation."""

__version__ = "0.4.0"
