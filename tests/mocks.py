class FakeHTTPXResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text
