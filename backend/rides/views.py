import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import (
    CheckPointSerializer,
    MatchSearchSerializer,
    RouteOverlapSerializer,
    RouteRequestSerializer,
    SavedMatchSerializer,
    WaypointRouteRequestSerializer,
)
from .store import DjangoMatchStore

# Import from services layer
from services.matching import InvalidRoute, MatchingEngine, select_for_display
from services.routing import (
    RoutingError,
    calculate_route_overlap,
    check_point_on_route,
    get_route_source,
)

logger = logging.getLogger(__name__)


def routing_error_response(error):
    return Response(
        {'error': f'Route provider failed: {error}'},
        status=status.HTTP_502_BAD_GATEWAY
    )


# ==================== Matching APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def search_matches(request):
    """Search active trips for ones matching the rider's route and schedule"""
    serializer = MatchSearchSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    passenger = serializer.to_route()
    trips = DjangoMatchStore().active_trips(exclude_driver=request.user)

    try:
        matches = MatchingEngine().find_matching_rides(passenger, trips)
    except InvalidRoute as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception(f"Match search failed for user {request.user.id}")
        matches = []

    shown = select_for_display(matches)
    return Response({
        'matches': [match.to_dict() for match in shown],
        'count': len(shown),
    })


# ==================== Saved Match APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def new_saved_matches(request):
    """Matches found for the rider's standing searches that they have not seen yet"""
    matches = DjangoMatchStore().new_matches_for_rider(request.user)
    serializer = SavedMatchSerializer(matches, many=True)
    return Response({
        'matches': serializer.data,
        'count': len(serializer.data),
    })


def update_saved_match(request, match_id, new_status, message):
    if not DjangoMatchStore().set_match_status(match_id, request.user, new_status):
        return Response(
            {'error': 'Match not found'},
            status=status.HTTP_404_NOT_FOUND
        )
    return Response({'message': message, 'match_id': match_id, 'status': new_status})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def mark_match_viewed(request, match_id):
    """Mark one of the rider's saved matches as viewed"""
    return update_saved_match(request, match_id, 'viewed', 'Match marked as viewed')


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def dismiss_match(request, match_id):
    """Dismiss one of the rider's saved matches"""
    return update_saved_match(request, match_id, 'dismissed', 'Match dismissed')


# ==================== Route APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def calculate_route(request):
    """Driving route between two points"""
    serializer = RouteRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        route = get_route_source().get_route(data['origin'], data['destination'])
    except RoutingError as e:
        return routing_error_response(e)

    return Response({'route': route.to_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def calculate_route_with_waypoints(request):
    """Driving route through ordered waypoints"""
    serializer = WaypointRouteRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        route = get_route_source().get_route_with_waypoints(
            data['origin'], data['waypoints'], data['destination']
        )
    except RoutingError as e:
        return routing_error_response(e)

    return Response({'route': route.to_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def check_point(request):
    """Check whether a point lies on the route between two others"""
    serializer = CheckPointSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = check_point_on_route(
        get_route_source(),
        data['point'],
        data['routeStart'],
        data['routeEnd'],
        threshold_km=data['threshold'],
    )
    return Response(result.to_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def route_overlap(request):
    """Share of route 1 running alongside route 2"""
    serializer = RouteOverlapSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        overlap = calculate_route_overlap(get_route_source(), data['route1'], data['route2'])
    except RoutingError as e:
        return routing_error_response(e)

    return Response({'overlap': overlap.to_dict()})
