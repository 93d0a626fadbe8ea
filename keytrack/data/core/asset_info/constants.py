"""
Enumerated values stored on assets and log entries.
"""


class AssetType:
    KEY = 'KEY'
    IT_DEVICE = 'IT_DEVICE'
    VEHICLE = 'VEHICLE'
    RENTAL = 'RENTAL'
    FACILITY = 'FACILITY'  # Locks / doors / buildings that hold keys

    ALL = frozenset({KEY, IT_DEVICE, VEHICLE, RENTAL, FACILITY})

    @classmethod
    def is_valid(cls, value) -> bool:
        return value in cls.ALL


class AssetStatus:
    AVAILABLE = 'AVAILABLE'
    CHECKED_OUT = 'CHECKED_OUT'
    MISSING = 'MISSING'
    MAINTENANCE = 'MAINTENANCE'
    RETIRED = 'RETIRED'

    ALL = frozenset({AVAILABLE, CHECKED_OUT, MISSING, MAINTENANCE, RETIRED})

    # Statuses in which metaData.currentHolder must be set
    HELD = frozenset({CHECKED_OUT, MISSING})

    @classmethod
    def is_valid(cls, value) -> bool:
        return value in cls.ALL


class LogAction:
    CHECK_IN = 'CHECK_IN'
    CHECK_OUT = 'CHECK_OUT'
    REPORT_MISSING = 'REPORT_MISSING'
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'

    ALL = frozenset({CHECK_IN, CHECK_OUT, REPORT_MISSING, CREATE, UPDATE, DELETE})


class LoanType:
    STANDARD = 'STANDARD'
    ONE_HOUR = '1_HOUR'
    FOUR_HOURS = '4_HOURS'
    END_OF_DAY = 'EOD'
    INDEFINITE = 'INDEFINITE'
    LONG_TERM = 'LONG_TERM'
    PERMANENT = 'PERMANENT'

    ALL = frozenset({STANDARD, ONE_HOUR, FOUR_HOURS, END_OF_DAY, INDEFINITE, LONG_TERM, PERMANENT})

    @classmethod
    def is_valid(cls, value) -> bool:
        return value in cls.ALL


class MetaKey:
    """Storage keys inside Asset.meta_data"""
    CURRENT_HOLDER = 'currentHolder'
    HOLDER_COMPANY = 'holderCompany'
    CHECKED_OUT_AT = 'checkedOutAt'
    DUE_DATE = 'dueDate'
    LOAN_TYPE = 'loanType'
    MISSING_SINCE = 'missingSince'
    MISSING_REASON = 'missingReason'
    LAST_AUDIT_DATE = 'lastAuditDate'
    KEY_CODE = 'keyCode'
    PARENT_ASSET_ID = 'assetId'
    LOCATION = 'location'

    # Keys written only by lifecycle transitions, never by a plain edit
    LIFECYCLE_OWNED = frozenset({
        CURRENT_HOLDER, HOLDER_COMPANY, CHECKED_OUT_AT, DUE_DATE,
        LOAN_TYPE, MISSING_SINCE, MISSING_REASON,
    })
