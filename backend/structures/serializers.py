from rest_framework import serializers
from .models import Structure


class StructureSerializer(serializers.ModelSerializer):
    is_externally_managed = serializers.BooleanField(read_only=True)

    class Meta:
        model = Structure
        fields = [
            "id",
            "name",
            "internal_reference_code",
            "status",
            "street_address",
            "zip_code",
            "country",
            "default_currency",
            "time_zone",
            "default_check_in_time",
            "default_check_out_time",
            "pms_type",
            "is_externally_managed",
            "last_synced_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "last_synced_at", "created_at", "updated_at"]

    def create(self, validated_data):
        request = self.context.get("request")
        if request and hasattr(request, "user"):
            return Structure.objects.create(user=request.user, **validated_data)
        raise serializers.ValidationError("User context is missing.")

    def validate_pms_type(self, value):
        if self.instance is not None and value != self.instance.pms_type:
            raise serializers.ValidationError("The PMS connection can only be chosen when the structure is created.")
        return value

    def validate(self, attrs):
        check_in = attrs.get("default_check_in_time")
        check_out = attrs.get("default_check_out_time")
        if check_in and check_out and check_in == check_out:
            raise serializers.ValidationError(
                "Default check-in and check-out times must differ."
            )
        return attrs
