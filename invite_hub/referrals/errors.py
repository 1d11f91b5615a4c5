class ReferralError(Exception):
    pass


class InvalidTransitionError(ReferralError):
    pass


class CreditGatewayError(ReferralError):
    pass


class CreditGatewayNotConfiguredError(CreditGatewayError):
    pass


class CodeRedemptionError(ReferralError):
    pass
