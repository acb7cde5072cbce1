"""
DOM selectors for the Meckano web portal.

This module defines every query used to interact with the portal: the login
surface, the dashboard, the monthly employee report and its time cells.

IMPORTANT: The portal is a Hebrew (RTL) single-page application. Labels and
link texts below are the literal Hebrew strings it renders. If the DOM or
the wording changes, this module will need to be updated.
"""

import re


class MeckanoSelectors:
    """
    Centralized selectors for Meckano DOM elements.

    All selectors use Playwright locator syntax.
    """

    # Login surface
    # Fields are located by their accessible label, with a role fallback
    # for the identifier field
    LOGIN_IDENTIFIER_LABEL = re.compile(r'אימייל|מייל|דוא"?ל|email', re.IGNORECASE)
    LOGIN_SECRET_LABEL = re.compile(r'סיסמה')
    LOGIN_SUBMIT_NAME = 'התחברות'

    # Second-factor confirmation code input (shown only for untrusted devices)
    MFA_CODE_INPUT = '#numberInput'

    # Authenticated state: the SPA switches to the dashboard route
    DASHBOARD_URL = re.compile(r'#dashboard$')

    # "Entrance button" on the dashboard, visible once the landing view rendered
    DASHBOARD_READY_TEXT = 'כפתור כניסה'

    # "Monthly report" link in the side menu
    MONTHLY_REPORT_LINK = 'a:has-text("דוח חודשי")'

    # Blocking dialogs that sometimes pop over the report
    BLOCKING_DIALOG = '[role="dialog"]:visible, .modal:visible'
    DIALOG_CLOSE_BUTTON = (
        'button.close, [aria-label="Close"], [aria-label="סגור"], '
        'button:has-text("סגור"), .modal-close'
    )

    # Monthly report table. Child combinators only: cells may hold tables
    # of their own, whose rows are not report rows
    REPORT_TABLE = '#mainview > div > table'
    REPORT_ROWS = '#mainview > div > table > tbody > tr'
    ROW_CELLS = 'xpath=./td'

    # Column positions within a report row
    DATE_CELL_INDEX = 1
    ENTRANCE_CELL_INDEX = 2
    EXIT_CELL_INDEX = 3
    MIN_ROW_CELLS = 4

    # Date label inside the date cell (e.g. "01/10/2026 ה'")
    DATE_LABEL = 'span div div p'

    # Time cells render an edit control and a display span mirroring the
    # committed value; the display is the second span of the cell
    CELL_INPUT = 'input'
    CELL_TEXT = 'span'
    CELL_TEXT_INDEX = 1

    # Day-of-week glyphs of the last two days of the Israeli work week
    # (Friday and Saturday)
    NON_WORKDAY_GLYPHS = ('ו', 'ש')

    @staticmethod
    def is_non_workday_label(date_label: str) -> bool:
        """
        Classify a date label as a weekend day.

        Example:
            >>> MeckanoSelectors.is_non_workday_label("03/10/2026 ש'")
            True
        """
        return any(glyph in date_label for glyph in MeckanoSelectors.NON_WORKDAY_GLYPHS)
