"""Activity correction and inspection."""

from .activity_corrector import ActivityCorrector, CorrectionReport, fix_fit_file

__all__ = ['ActivityCorrector', 'CorrectionReport', 'fix_fit_file']
