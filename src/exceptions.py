class CrimeDataError(Exception):
    """Base error for the crime data pipeline"""
    pass

class DataLoadError(CrimeDataError):
    """Error for when the incident file is missing or unreadable"""
    pass

class MissingColumnsError(CrimeDataError):
    """Error for an incident file lacking required columns"""
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Incident file is missing required columns: {', '.join(self.missing)}")

class DataValidationError(CrimeDataError):
    """Error for values that cannot be parsed"""
    pass
