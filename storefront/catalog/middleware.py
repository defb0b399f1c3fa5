from django.utils.deprecation import MiddlewareMixin

from .delivery import RESPONSE_HEADER, get_session_delivery_mode


class DeliveryModeMiddleware(MiddlewareMixin):
    """
    Puts the session's delivery mode on request.delivery_mode and echoes
    the mode in effect after the view ran in the X-Delivery-Mode header.

    Must come after SessionMiddleware.
    """

    def process_request(self, request):
        request.delivery_mode = get_session_delivery_mode(request)

    def process_response(self, request, response):
        response[RESPONSE_HEADER] = get_session_delivery_mode(request)
        return response
