"""Serializers for request bodies and for domain models in API responses.

Request serializers only check shape. Business rules (positive limits,
overlapping slots, ...) are enforced by the domain and reported as domain
errors.
"""

from rest_framework import serializers

from rollcall.domain import CapacityMode, GroupMember, SlotSelection

# Requests


class GroupMemberSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")


class SlotSelectionSerializer(serializers.Serializer):
    slot_id = serializers.CharField(max_length=64)
    category_id = serializers.CharField(max_length=64)


class RegisterRequestSerializer(serializers.Serializer):
    group_members = GroupMemberSerializer(many=True, required=False, default=list)
    selected_time_slot = SlotSelectionSerializer(required=False, allow_null=True, default=None)

    def to_domain(self) -> dict:
        data = self.validated_data
        selection = data.get("selected_time_slot")
        return {
            "group_members": [GroupMember(**member) for member in data.get("group_members", [])],
            "selected_time_slot": SlotSelection(**selection) if selection else None,
        }


class MarkAttendanceSerializer(serializers.Serializer):
    has_attended = serializers.BooleanField()


class ScanSerializer(serializers.Serializer):
    """Scanned code contents, either the decoded object or its JSON text."""

    qr_data = serializers.JSONField()


class TimesSerializer(serializers.Serializer):
    in_time = serializers.DateTimeField(required=False)
    out_time = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide in_time, out_time or both.")
        return attrs


class CategoryInputSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64, required=False)
    name = serializers.CharField(max_length=255, allow_blank=True)
    max_occupants = serializers.IntegerField(required=False, allow_null=True, default=None)


class TimeSlotInputSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64, required=False)
    name = serializers.CharField(max_length=255, allow_blank=True)
    start_time = serializers.CharField(max_length=5)
    end_time = serializers.CharField(max_length=5)
    categories = CategoryInputSerializer(many=True)


class CapacityRequestSerializer(serializers.Serializer):
    capacity_mode = serializers.ChoiceField(choices=[mode.value for mode in CapacityMode])
    max_seats = serializers.IntegerField(required=False, allow_null=True, default=None)
    time_slots_enabled = serializers.BooleanField(default=False)
    time_slots = TimeSlotInputSerializer(many=True, required=False, default=list)


# Responses


class CredentialSerializer(serializers.Serializer):
    kind = serializers.CharField(source="kind.value")
    payload = serializers.JSONField()
    image = serializers.CharField(source="image_ref", allow_null=True)
    issued_at = serializers.DateTimeField()


class RegistrationSerializer(serializers.Serializer):
    id = serializers.CharField()
    event_id = serializers.CharField()
    volunteer_id = serializers.CharField()
    created_at = serializers.DateTimeField()
    group_members = GroupMemberSerializer(many=True)
    selected_time_slot = SlotSelectionSerializer(allow_null=True)
    in_time = serializers.DateTimeField(allow_null=True)
    out_time = serializers.DateTimeField(allow_null=True)
    has_attended = serializers.BooleanField()
    state = serializers.CharField(source="state.value")


class RegistrationViewSerializer(serializers.Serializer):
    registration = RegistrationSerializer()
    entry_credential = CredentialSerializer(allow_null=True)
    exit_credential = CredentialSerializer(allow_null=True)


class AttendanceOutcomeSerializer(serializers.Serializer):
    registration = RegistrationSerializer()
    state = serializers.CharField(source="state.value")
    already_recorded = serializers.BooleanField()
    exit_credential = CredentialSerializer(allow_null=True)


class ReportRowSerializer(serializers.Serializer):
    registration = RegistrationSerializer()
    status = serializers.CharField()


class AttendanceReportSerializer(serializers.Serializer):
    event_id = serializers.CharField()
    total = serializers.IntegerField()
    present = serializers.IntegerField()
    checked_out = serializers.IntegerField()
    absent = serializers.IntegerField()
    attendance_rate = serializers.IntegerField()
    rows = ReportRowSerializer(many=True)
