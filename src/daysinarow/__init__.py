"""DaysInARow: a time-gated commitment escrow.

Users pledge a deposit against a streak of daily check-ins. Completing the
streak refunds the deposit; missing a day forfeits it to a loss account.
A protocol rake is taken when the commitment is opened.
"""

from daysinarow.escrow import DaysInARow

__all__ = ["DaysInARow"]
