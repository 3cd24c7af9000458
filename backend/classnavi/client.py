"""
Minimal ClassNavi (Kumon instructor site) REST client.

Only the calls the worklist tooling needs: token login, instructor info,
the paginated center student list, study results and progress goals. Every
request body carries a ``client`` descriptor the API expects.
"""
import platform
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from core.logger import get_logger

logger = get_logger('classnavi')

SITE_ORIGIN = 'https://instructor2.digital.kumon.com'
COUNTRY_CODE = 'USA'
PAGE_SIZE = 100
REQUEST_TIMEOUT = 30

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36'
)

STUDENT_LIST_KEYS = ('CenterAllStudentList', 'StudentInfoList', 'StudentList')


class ClassNaviError(Exception):
    """A ClassNavi request failed or returned a non-zero ResultCode."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ClassNaviAuthError(ClassNaviError):
    """Login was rejected, or a call was made without a token."""


def client_descriptor(client_id: Any = None) -> Dict[str, str]:
    """The ``client`` object sent with every API call."""
    return {
        'applicationName': 'Class-Navi',
        'version': '1.0.0.0',
        'programName': 'Class-Navi',
        'machineName': '-',
        'os': f"{sys.platform} {platform.machine()}",
        'id': str(client_id if client_id is not None else int(time.time() * 1000)),
    }


def extract_student_list(response: Any) -> List[Dict[str, Any]]:
    """Pull the student array out of a student-list response, whatever it is called."""
    if not response:
        return []
    if isinstance(response, list):
        return response
    if not isinstance(response, dict):
        return []
    for key in STUDENT_LIST_KEYS:
        if isinstance(response.get(key), list):
            return response[key]
    for value in response.values():
        if isinstance(value, list):
            return value
    return []


@dataclass
class InstructorContext:
    login_id: str
    full_name: str
    center_id: Optional[str]
    assistant_sec: str

    def to_dict(self) -> Dict[str, Any]:
        return {'loginID': self.login_id, 'fullName': self.full_name, 'centerID': self.center_id}


class ClassNaviClient:
    """Session-based client; call login() before any API method."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, page_delay: float = 0.5):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': BROWSER_USER_AGENT})
        self.page_delay = page_delay
        self.token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.expires_in: Optional[int] = None

    def login(self, username: str, password: str, is_hash: bool = False) -> str:
        """
        Exchange credentials for a bearer token.

        Args:
            username: Instructor LoginID (sent as ``USA/<id>``)
            password: Plain password, or the NaviPasswordHash cookie value
            is_hash: The cookie value is already URL encoded and is sent as-is
        """
        username_encoded = quote(username.strip(), safe='')
        password_encoded = password.strip() if is_hash else quote(password.strip(), safe='')
        body = f"grant_type=password&username={COUNTRY_CODE}%2F{username_encoded}&password={password_encoded}"

        try:
            response = self.session.post(
                f"{self.base_url}/token",
                data=body,
                headers={
                    'Content-Type': 'application/x-www-form-urlencoded',
                    'Accept': 'application/json, text/plain, */*',
                    'Accept-Language': 'en-US,en;q=0.9',
                    'Origin': SITE_ORIGIN,
                    'Referer': f"{self.base_url}/",
                },
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise ClassNaviAuthError(f"Login request failed: {e}") from e

        text = response.text or ''
        if '<!DOCTYPE html>' in text or '<html' in text.lower()[:200]:
            raise ClassNaviAuthError(
                f"Login failed: server returned an HTML error page ({response.status_code}). "
                "The password hash may have expired; log in through the browser and copy a fresh "
                "NaviPasswordHash cookie.",
                response.status_code,
            )
        if response.status_code != 200:
            raise ClassNaviAuthError(f"Login failed (status {response.status_code}): {text[:300]}", response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict) or not data.get('access_token'):
            raise ClassNaviAuthError(f"Login failed: no access_token in response: {text[:200]}", response.status_code)

        self.token = data['access_token']
        self.refresh_token = data.get('refresh_token')
        self.expires_in = data.get('expires_in')
        logger.info(f"ClassNavi login successful, token expires in {self.expires_in} seconds")
        return self.token

    def api_call(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON body to an API endpoint and return the decoded response."""
        if not self.token:
            raise ClassNaviAuthError("Not logged in to ClassNavi")
        try:
            response = self.session.post(
                f"{self.base_url}{endpoint}",
                json=body,
                headers={'Authorization': f"Bearer {self.token}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise ClassNaviError(f"API call {endpoint} failed: {e}") from e

        if response.status_code != 200:
            raise ClassNaviError(f"API call {endpoint} failed ({response.status_code}): {response.text[:300]}", response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise ClassNaviError(f"API call {endpoint} returned invalid JSON", response.status_code) from e

        result = data.get('Result') if isinstance(data, dict) else None
        if isinstance(result, dict) and result.get('ResultCode') != 0:
            errors = result.get('Errors') or []
            detail = ', '.join(str(e.get('Message') or e.get('ErrorCode')) for e in errors if isinstance(e, dict))
            raise ClassNaviError(f"API error: {detail or 'ResultCode ' + str(result.get('ResultCode'))}")
        return data

    def get_instructor_info(self, login_id: str) -> Dict[str, Any]:
        return self.api_call('/api/ATX0010P/GetInstructorInfo', {
            'SystemCountryCD': COUNTRY_CODE,
            'LoginID': login_id,
            'client': client_descriptor(),
        })

    def get_instructor_context(self, login_id: str) -> InstructorContext:
        """Instructor info reduced to the IDs later calls need."""
        info = self.get_instructor_info(login_id)
        center_id = info.get('MainCenterID')
        if not center_id:
            centers = info.get('CenterInfoList') or []
            center_id = centers[0].get('CenterID') if centers else None
        return InstructorContext(
            login_id=login_id,
            full_name=info.get('FullName', ''),
            center_id=center_id,
            assistant_sec=info.get('InstructorAssistantSec') or '2',
        )

    def get_all_students(self, center_id: str, instructor_id: str, assistant_sec: str) -> List[Dict[str, Any]]:
        """
        Fetch the whole center student list, page by page.

        The endpoint has answered to two paging schemes; Offset/GetNum is
        tried first and StartNum/DispNum is used for the rest of the run if
        the first page comes back empty. A short page ends the listing.
        """
        endpoint = '/api/ATE0010P/GetCenterAllStudentList'
        base_body = {
            'SystemCountryCD': COUNTRY_CODE,
            'CenterID': center_id,
            'InstructorID': instructor_id,
            'InstructorAssistantSec': assistant_sec,
            'ValidFlg': '1',
            'client': client_descriptor(),
        }

        def page(start: int, use_start_num: bool) -> List[Dict[str, Any]]:
            paging = {'StartNum': start, 'DispNum': PAGE_SIZE} if use_start_num else {'Offset': start, 'GetNum': PAGE_SIZE}
            return extract_student_list(self.api_call(endpoint, {**base_body, **paging}))

        use_start_num = False
        batch = page(1, use_start_num)
        if not batch:
            use_start_num = True
            batch = page(1, use_start_num)

        students: List[Dict[str, Any]] = []
        while batch:
            students.extend(batch)
            logger.debug(f"Fetched {len(students)} students so far")
            if len(batch) < PAGE_SIZE:
                break
            time.sleep(self.page_delay)
            batch = page(1 + len(students), use_start_num)

        logger.info(f"ClassNavi returned {len(students)} students")
        return students

    def get_study_result(
        self,
        student_id: str,
        class_id: Any,
        class_student_seq: Any,
        subject_cd: str,
        center_id: Optional[str] = None,
        worksheet_cd: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {
            'SystemCountryCD': COUNTRY_CODE,
            'StudentID': student_id,
            'ClassID': class_id,
            'ClassStudentSeq': class_student_seq,
            'SubjectCD': subject_cd,
            'client': client_descriptor(),
        }
        if center_id:
            body['CenterID'] = center_id
        if worksheet_cd:
            body['WorksheetCD'] = worksheet_cd
        return self.api_call('/api/ATD0010P/GetStudyResultInfoList', body)

    def get_progress_goal(self, student_id: str, class_id: Any, class_student_seq: Any, subject_cd: str) -> Dict[str, Any]:
        return self.api_call('/api/ATE0020P/GetProgressGoal', {
            'SystemCountryCD': COUNTRY_CODE,
            'StudentID': student_id,
            'ClassID': class_id,
            'ClassStudentSeq': class_student_seq,
            'SubjectCD': subject_cd,
            'client': client_descriptor(),
        })
