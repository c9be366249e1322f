"""Visit routing.

A visit records who currently owns the patient as a pair of values: the
``owner`` (a department id or a sentinel) and the free-text clinical note.
The legacy ``"With <Department>: <note>"`` strings are only produced for
display and only parsed by :func:`parse_legacy_diagnosis` when records are
imported.
"""
import re
from collections import namedtuple


departments = (
    'vitals',
    'doctor',
    'laboratory',
    'pharmacy',
    'injection_room',
    'injection_room_later',
    'cash_point',
    'hmo',
    'admission',
)
sentinels = ('pending', 'cancelled', 'completed', 'vaccination_denied')
workflow_owners = departments + sentinels

department_labels = {
    'vitals': 'Vitals',
    'doctor': 'Doctor',
    'laboratory': 'Laboratory',
    'pharmacy': 'Pharmacy',
    'injection_room': 'Injection Room',
    'injection_room_later': 'Injection Room Later',
    'cash_point': 'Cash Point',
    'hmo': 'HMO',
}
sentinel_labels = {
    'pending': 'Pending',
    'cancelled': 'Cancelled',
    'completed': 'Completed',
    'vaccination_denied': 'Vaccination Denied',
}

_owner_by_label = {label: owner for owner, label in department_labels.items()}
_legacy_tag = re.compile(r'^With (?P<label>[A-Za-z ]+?):\s?(?P<note>.*)$', re.DOTALL)
_admission_tag = re.compile(r'^For Admission:\s?(?P<note>.*)$', re.DOTALL)

# Marks a Transition field that should be left as it is.
KEEP = object()


class Routing(namedtuple('Routing', ['owner', 'clinical_note'])):
    __slots__ = ()

    @property
    def label(self):
        return render_diagnosis(self.owner, self.clinical_note)


VisitState = namedtuple('VisitState', ['owner', 'clinical_note', 'notes', 'changes'])

Transition = namedtuple('Transition', ['owner', 'clinical_note', 'note', 'fields'])
Transition.__new__.__defaults__ = (KEEP, KEEP, None, None)


def render_diagnosis(owner, clinical_note):
    note = clinical_note or ''
    if owner is None:
        return note
    if owner in sentinel_labels:
        return sentinel_labels[owner]
    if owner == 'admission':
        return f"For Admission: {note}"
    return f"With {department_labels[owner]}: {note}"


def parse_legacy_diagnosis(diagnosis):
    """Split a legacy diagnosis tag into a Routing.

    Only the first ``": "`` separates the department from the note, so
    notes such as ``"Diagnosis: suspected TB: follow up"`` survive intact.
    """
    text = (diagnosis or '').strip()

    for owner, label in sentinel_labels.items():
        if text == label:
            return Routing(owner, '')

    match = _admission_tag.match(text)
    if match:
        return Routing('admission', match.group('note'))

    match = _legacy_tag.match(text)
    if match and match.group('label') in _owner_by_label:
        return Routing(_owner_by_label[match.group('label')], match.group('note'))

    return Routing(None, text)


def append_note(notes, note):
    if not note:
        return notes
    if not notes:
        return note
    return f"{notes}\n\n{note}"


def advance(state, transition):
    """Return the VisitState that results from applying ``transition``.

    The input state is never modified. Notes are appended, fields that the
    transition does not name are carried over unchanged.
    """
    owner = state.owner if transition.owner is KEEP else transition.owner
    if owner is not None and owner not in workflow_owners:
        raise ValueError(f"Unknown workflow owner: {owner}")

    clinical_note = state.clinical_note if transition.clinical_note is KEEP else transition.clinical_note

    changes = dict(state.changes or {})
    changes.update(transition.fields or {})

    return VisitState(
        owner=owner,
        clinical_note=clinical_note,
        notes=append_note(state.notes, transition.note),
        changes=changes,
    )


def route_to(owner, note=None, clinical_note=KEEP, **fields):
    return Transition(owner=owner, clinical_note=clinical_note, note=note, fields=fields)


def release(note=None, clinical_note=KEEP, **fields):
    """Drop the department tag and keep only the clinical note."""
    return Transition(owner=None, clinical_note=clinical_note, note=note, fields=fields)


def annotate(note=None, **fields):
    """Append a note or set fields without moving the patient."""
    return Transition(note=note, fields=fields)


def stamp(author, when, text):
    return f"{author} ({when:%Y-%m-%d}): {text}"
