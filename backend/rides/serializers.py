from rest_framework import serializers
from django.contrib.auth import get_user_model

from common.utils.schedule import parse_time_minutes
from services.matching.types import Schedule, TripRoute
from services.routing.types import GeoPoint
from .models import RiderSearch, SavedMatch, Trip

User = get_user_model()


class LocationSerializer(serializers.Serializer):
    """A latitude/longitude pair, validated as a GeoPoint"""
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)

    def validate(self, attrs):
        return GeoPoint(attrs['latitude'], attrs['longitude'])


def validate_schedule_time(value):
    try:
        parse_time_minutes(value)
    except ValueError as e:
        raise serializers.ValidationError(str(e))
    return value


class MatchSearchSerializer(serializers.Serializer):
    """Serializer for a live match search"""
    pickup_latitude = serializers.FloatField(min_value=-90, max_value=90)
    pickup_longitude = serializers.FloatField(min_value=-180, max_value=180)
    dropoff_latitude = serializers.FloatField(min_value=-90, max_value=90)
    dropoff_longitude = serializers.FloatField(min_value=-180, max_value=180)
    schedule_days = serializers.ListField(
        child=serializers.CharField(), allow_empty=False
    )
    schedule_time = serializers.CharField(validators=[validate_schedule_time])

    def to_route(self) -> TripRoute:
        data = self.validated_data
        return TripRoute(
            pickup=GeoPoint(data['pickup_latitude'], data['pickup_longitude']),
            dropoff=GeoPoint(data['dropoff_latitude'], data['dropoff_longitude']),
            schedule=Schedule(days=data['schedule_days'], time=data['schedule_time']),
        )


class RouteRequestSerializer(serializers.Serializer):
    """Serializer for plain route calculation"""
    origin = LocationSerializer()
    destination = LocationSerializer()


class WaypointRouteRequestSerializer(RouteRequestSerializer):
    """Serializer for route calculation through ordered waypoints"""
    waypoints = serializers.ListField(
        child=LocationSerializer(), required=False, default=list
    )


class CheckPointSerializer(serializers.Serializer):
    """Serializer for the point-on-route diagnostic"""
    point = LocationSerializer()
    routeStart = LocationSerializer()
    routeEnd = LocationSerializer()
    threshold = serializers.FloatField(min_value=0, required=False, default=2.0)


class TripEndpointsSerializer(serializers.Serializer):
    pickupLocation = LocationSerializer()
    dropoffLocation = LocationSerializer()

    def validate(self, attrs):
        return (attrs['pickupLocation'], attrs['dropoffLocation'])


class RouteOverlapSerializer(serializers.Serializer):
    """Serializer for the route overlap diagnostic"""
    route1 = TripEndpointsSerializer()
    route2 = TripEndpointsSerializer()


class DriverBasicSerializer(serializers.ModelSerializer):
    """Driver details shown with a saved match"""
    name = serializers.ReadOnlyField(source='display_name')

    class Meta:
        model = User
        fields = ['id', 'name', 'rating', 'phone_number']


class TripSerializer(serializers.ModelSerializer):
    """Serializer for driver trips"""
    driver = DriverBasicSerializer(read_only=True)

    class Meta:
        model = Trip
        fields = ['id', 'driver', 'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
                  'schedule_days', 'schedule_time', 'price', 'available_seats', 'status']


class RiderSearchBasicSerializer(serializers.ModelSerializer):
    class Meta:
        model = RiderSearch
        fields = ['id', 'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address']


class SavedMatchSerializer(serializers.ModelSerializer):
    """Serializer for matches found for a standing rider search"""
    search = RiderSearchBasicSerializer(read_only=True)
    trip = TripSerializer(read_only=True)

    class Meta:
        model = SavedMatch
        fields = ['id', 'score', 'status', 'created_at', 'search', 'trip']
