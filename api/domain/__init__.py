# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the clinic scheduling engine.

This package contains pure business logic functions with no side effects:
recurrence expansion, series reconstruction for cascading edits, status
lifecycle and the financial edit privilege.
"""
