"""Error kinds raised by the analysis pipeline."""


class TBAnalysisError(Exception):
    """Base class for every failure that aborts an analysis run."""


class DataLoadError(TBAnalysisError):
    """The source file is missing, unreadable, unparseable or lacks columns."""


class EmptyDatasetError(TBAnalysisError):
    """No rows are left after the year filter or the cleaning step."""


class ModelFitError(TBAnalysisError):
    """A regression or clustering model cannot be fitted on the data."""
