from app.schemas.appointment import (
    AppointmentBookRequest,
    AppointmentCancelRequest,
    AppointmentHistoryList,
    AppointmentHistoryRead,
    AppointmentNotesUpdate,
    AppointmentNotifyRequest,
    AppointmentRead,
    AppointmentRescheduleRequest,
    CancellationResult,
    NotesField,
    NotificationKind,
    NotificationResult,
    RescheduleResult,
    SchedulingResult,
)
from app.schemas.scheduling import (
    AlternativeSlot,
    AppointmentPolicies,
    CancellationPolicy,
    ConflictCheckRequest,
    ConflictingAppointment,
    ConflictResult,
    ConflictType,
    ReschedulingPolicy,
    ServiceSummary,
    SlotReason,
    TimeSlot,
)
