"""
Evolution API client for sending WhatsApp messages.
Every call returns a plain result; network and HTTP failures never raise.
"""
import os
import re
import requests
import logging
from typing import Optional, Dict, Any
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15  # seconds
STATUS_SENT = 'SENT'
STATUS_FAILED = 'FAILED'


def get_setting(name, default=''):
    """Integration settings come from Django settings, falling back to the environment"""
    return getattr(settings, name, os.getenv(name, default))


def default_provider_config() -> Dict[str, Any]:
    """Provider config used when a tenant's messaging is provisioned automatically"""
    instance_name = get_setting('EVOLUTION_INSTANCE_NAME', 'lpgapp')
    return {
        'provider': 'evolution',
        'api_url': get_setting('EVOLUTION_API_URL', ''),
        'api_key': get_setting('EVOLUTION_API_KEY', ''),
        'instance_name': instance_name,
        'webhook_url': get_setting('EVOLUTION_WEBHOOK_URL', ''),
        'from_number': instance_name,
    }


def format_phone_number(phone: str) -> str:
    """Normalise a phone number to the +880 (Bangladesh) international form"""
    formatted = re.sub(r'[^\d+]', '', phone or '')

    if formatted.startswith('+'):
        return formatted
    if formatted.startswith('880'):
        return f"+{formatted}"
    if formatted.startswith('0'):
        return f"+880{formatted[1:]}"
    if formatted.startswith('1') and len(formatted) == 11:
        return f"+880{formatted}"
    return f"+880{formatted}"


def _failed(error: str) -> Dict[str, Any]:
    return {'success': False, 'message_id': None, 'status': STATUS_FAILED, 'error': error}


class EvolutionProvider:
    """Thin wrapper over the Evolution API REST endpoints"""

    def __init__(self, api_url: str, api_key: str, instance_name: str,
                 webhook_url: str = '', timeout: Optional[float] = None):
        self.api_url = api_url or ''
        self.api_key = api_key or ''
        self.instance_name = instance_name or ''
        self.webhook_url = webhook_url or ''
        if timeout is None:
            try:
                timeout = float(get_setting('EVOLUTION_TIMEOUT', DEFAULT_TIMEOUT))
            except (TypeError, ValueError):
                timeout = DEFAULT_TIMEOUT
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]):
        config = config or {}
        return cls(
            api_url=config.get('api_url', ''),
            api_key=config.get('api_key', ''),
            instance_name=config.get('instance_name', ''),
            webhook_url=config.get('webhook_url', ''),
        )

    @property
    def base_url(self) -> str:
        return self.api_url[:-1] if self.api_url.endswith('/') else self.api_url

    @property
    def headers(self) -> Dict[str, str]:
        return {'Content-Type': 'application/json', 'apikey': self.api_key}

    def send_message(self, to: str, text: str, instance_name: Optional[str] = None) -> Dict[str, Any]:
        """Send a text message. Returns {success, message_id, status, error}"""
        if not self.api_url:
            return _failed('Evolution API URL is not configured')

        instance = instance_name or self.instance_name
        url = f"{self.base_url}/message/sendText/{instance}"
        payload = {
            'number': format_phone_number(to),
            'text': text,
        }

        try:
            response = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Evolution API request failed for instance {instance}: {str(e)}")
            return _failed(str(e))

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.ok and isinstance(data, dict) and data.get('key'):
            return {
                'success': True,
                'message_id': data['key'].get('id'),
                'status': STATUS_SENT,
                'error': None,
            }

        error = None
        if isinstance(data, dict):
            error = data.get('message') or data.get('error')
        if isinstance(error, list):
            error = '; '.join(str(e) for e in error)
        return _failed(str(error or f"Failed to send message via Evolution API (HTTP {response.status_code})"))

    def get_instance_status(self, instance_name: Optional[str] = None) -> bool:
        """True when the instance is connected to WhatsApp (state 'open')"""
        instance = instance_name or self.instance_name
        try:
            response = requests.get(
                f"{self.base_url}/instance/fetchInstances",
                headers={'apikey': self.api_key},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error checking Evolution API instance status: {str(e)}")
            return False

        if isinstance(data, list):
            for item in data:
                info = (item or {}).get('instance') or {}
                if info.get('instanceName') == instance:
                    return info.get('state') == 'open'
        return False

    def get_connection_status(self, instance_name: Optional[str] = None) -> Dict[str, Any]:
        """Connection state plus the QR code (base64) when the instance still needs pairing"""
        instance = instance_name or self.instance_name
        try:
            response = requests.get(
                f"{self.base_url}/instance/connect/{instance}",
                headers={'apikey': self.api_key},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error getting Evolution API connection status: {str(e)}")
            return {'connected': False, 'qr_code': None, 'status': 'error'}

        state = (data.get('instance') or {}).get('state') if isinstance(data, dict) else None
        qrcode = (data.get('qrcode') or {}).get('base64') if isinstance(data, dict) else None
        if qrcode is None and isinstance(data, dict):
            qrcode = data.get('base64')
        return {
            'connected': state == 'open',
            'qr_code': qrcode,
            'status': state or 'unknown',
        }

    def setup_instance(self, instance_name: Optional[str] = None) -> bool:
        """Create the WhatsApp (Baileys) instance on the Evolution server"""
        instance = instance_name or self.instance_name
        payload = {
            'instanceName': instance,
            'qrcode': True,
            'integration': 'WHATSAPP-BAILEYS',
        }
        if self.webhook_url:
            payload['webhookUrl'] = self.webhook_url

        try:
            response = requests.post(
                f"{self.base_url}/instance/create",
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error setting up Evolution API instance {instance}: {str(e)}")
            return False

        return bool(response.ok and isinstance(data, dict) and data.get('instance'))
