"""
Serializers for job sites.
"""
from rest_framework import serializers
from .models import Site


class SiteSerializer(serializers.ModelSerializer):
    """Serializer for Site model."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Site
        fields = [
            'id', 'name', 'location', 'start_date', 'end_date',
            'supervisor', 'manager', 'status', 'status_display',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': "End date cannot be before start date"})

        # Blank optional contacts are stored as null
        for field_name in ('supervisor', 'manager'):
            if field_name in attrs and not (attrs[field_name] or '').strip():
                attrs[field_name] = None
        return attrs

