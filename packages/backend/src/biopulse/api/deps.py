"""FastAPI dependencies — pull collaborators off app.state.

Learn: create_app() builds the store, services, gateway and broadcaster
once and parks them on app.state. These accessors take an
HTTPConnection, so the same dependency works for HTTP routes and the
WebSocket endpoint, and tests can swap any piece via
app.dependency_overrides.
"""

from starlette.requests import HTTPConnection

from biopulse.realtime.broadcaster import LiveUpdateBroadcaster
from biopulse.realtime.gateway import ConnectionGateway
from biopulse.services.analysis_client import AnalysisClient
from biopulse.services.biomarker_service import BiomarkerService
from biopulse.services.patient_service import PatientService


def get_patient_service(conn: HTTPConnection) -> PatientService:
    return conn.app.state.patient_service


def get_biomarker_service(conn: HTTPConnection) -> BiomarkerService:
    return conn.app.state.biomarker_service


def get_analysis_client(conn: HTTPConnection) -> AnalysisClient:
    return conn.app.state.analysis_client


def get_gateway(conn: HTTPConnection) -> ConnectionGateway:
    return conn.app.state.gateway


def get_broadcaster(conn: HTTPConnection) -> LiveUpdateBroadcaster:
    return conn.app.state.broadcaster
