import logging
from contextlib import contextmanager

from catalog import CatalogDesk
from patients import PatientRegistry
from billing import BillingLedger
from laboratory import LaboratoryDesk
from claims import ClaimsDesk
from pharmacy import PharmacyDesk
from injections import InjectionRoom
from vaccinations import VaccinationClinic
from errors import RecordNotFound
from models import now_in_hospital_tz
from workflow import advance

logger = logging.getLogger(__name__)


class HospitalStore(
    CatalogDesk,
    PatientRegistry,
    BillingLedger,
    LaboratoryDesk,
    ClaimsDesk,
    PharmacyDesk,
    InjectionRoom,
    VaccinationClinic,
):
    """Application state for one hospital, bound to a SQLAlchemy session.

    Every operation that changes more than one record runs inside
    :meth:`atomic`, so it either commits as a whole or leaves the session
    rolled back. Nested calls join the outermost transaction.
    """

    def __init__(self, session, clock=None):
        self.session = session
        self.clock = clock or now_in_hospital_tz
        self._transaction_depth = 0

    def __repr__(self):
        return f"<HospitalStore session={self.session!r}>"

    def now(self):
        return self.clock()

    def today(self):
        return self.clock().date()

    @contextmanager
    def atomic(self):
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield self.session
            finally:
                self._transaction_depth -= 1
            return

        self._transaction_depth = 1
        try:
            yield self.session
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.warning("Rolled back: %s", e)
            raise
        finally:
            self._transaction_depth = 0

    def require(self, model, record_id, kind=None):
        record = self.session.get(model, record_id) if record_id is not None else None
        if record is None:
            raise RecordNotFound(kind or model.__name__, record_id)
        return record

    def advance_visit(self, patient, transition):
        """Apply ``transition`` to the patient's current (last) visit.

        This is the only place a visit's routing is written. Returns the
        resulting VisitState.
        """
        visit = patient.current_visit
        if visit is None:
            raise ValueError(f"Patient {patient.id} has no visit record")

        state = advance(visit.state, transition)
        with self.atomic():
            visit.apply_state(state)
        logger.info("Visit %s of %s now %r", visit.id, patient.id, visit.diagnosis)
        return state
