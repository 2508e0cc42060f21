from rest_framework.pagination import CursorPagination

class PaymentCursorPagination(CursorPagination):
    page_size = 10  # number of records per page
    ordering = 'created_at'  # oldest pending first
    cursor_query_param = 'cursor'
