from rest_framework.pagination import CursorPagination


class NotificationJobCursorPagination(CursorPagination):
    page_size = 25
    ordering = '-scheduled_for'  # latest first
    cursor_query_param = 'cursor'

    def get_page_size(self, request):
        """
        Use 'top' query param as page size if provided; otherwise, use default page_size.
        """
        top = request.query_params.get('top')
        if top:
            try:
                return min(int(top), 200)
            except ValueError:
                return self.page_size  # fallback to default if invalid
        return self.page_size
