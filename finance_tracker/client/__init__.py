from finance_tracker.client.api import FinanceTrackerClient
from finance_tracker.client.errors import ApiRequestError, ClientError, SessionExpiredError
from finance_tracker.client.http import HttpClient
from finance_tracker.client.session import SessionContext, TokenStore
