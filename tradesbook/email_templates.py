"""
MJML Email Templates
Booking, lead and refund notifications using MJML for responsive, cross-client compatibility
"""

from typing import Optional

from .config import FRONTEND_URL, PUBLIC_BASE_URL

# Brand colors - tradesbook.ie blue/slate
THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

LOGO_URL = f"{PUBLIC_BASE_URL}/tradesbook-logo.png"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image
              src="{LOGO_URL}"
              alt="tradesbook.ie"
              width="160px"
              href="{PUBLIC_BASE_URL}"
              padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © tradesbook.ie - Professional TV installation across Ireland
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _booking_summary(booking) -> str:
    addons = ", ".join(a.get("name", "") for a in (booking.addons or [])) or "None"
    scheduled = booking.scheduled_date.strftime("%d %B %Y") if booking.scheduled_date else "To be arranged"
    return f"""
    <mj-text>
      Reference: <strong>{booking.qr_code}</strong><br/>
      TV size: {booking.tv_size}"<br/>
      Service: {booking.service_type}<br/>
      Wall type: {booking.wall_type}<br/>
      Add-ons: {addons}<br/>
      Preferred date: {scheduled}
    </mj-text>
    """


def booking_confirmation_template(booking, qr_tracking_url: str) -> str:
    """Customer booking confirmation"""
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Thanks for booking with tradesbook.ie. Local installers are being notified now.
    </mj-text>

    <mj-text>
      Hi {booking.contact_name or 'there'},
    </mj-text>

    {_booking_summary(booking)}

    <mj-text align="center" font-size="32px" font-weight="bold" color="{THEME['text_primary']}" padding="20px 0">
      €{booking.estimated_total:,.2f}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      This is an estimate. You pay your installer directly once the final price is agreed.
    </mj-text>
    """

    return get_base_template(
        title="Booking Confirmed",
        preview_text=f"Your TV installation booking {booking.qr_code}",
        content_sections=content,
        cta_url=qr_tracking_url,
        cta_label="Track Your Installation",
    )


def installer_new_lead_template(installer_name: str, booking, lead_fee: float) -> str:
    """New lead available, sent to approved installers"""
    content = f"""
    <mj-text>
      Hi {installer_name},
    </mj-text>

    <mj-text>
      A new TV installation request is available in your area.
    </mj-text>

    {_booking_summary(booking)}

    <mj-text>
      Location: {booking.address}<br/>
      Estimated job value: €{booking.estimated_total:,.2f}<br/>
      Lead fee: <strong>€{lead_fee:,.2f}</strong>
    </mj-text>
    """

    return get_base_template(
        title="New Installation Lead",
        preview_text=f"New {booking.service_type} lead - {booking.qr_code}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/installer-dashboard",
        cta_label="View Lead",
    )


def lead_purchased_template(booking, installer) -> str:
    """Customer notice that an installer has taken the job"""
    content = f"""
    <mj-text>
      Hi {booking.contact_name or 'there'},
    </mj-text>

    <mj-text>
      Good news! <strong>{installer.business_name}</strong> will handle your TV installation
      ({booking.qr_code}) and will be in touch shortly to confirm a time.
    </mj-text>

    <mj-text>
      Installer: {installer.contact_name or installer.business_name}<br/>
      Phone: {installer.phone or 'Provided on contact'}<br/>
      Email: {installer.email or 'Provided on contact'}
    </mj-text>
    """

    return get_base_template(
        title="Your Installer Is Confirmed",
        preview_text=f"{installer.business_name} accepted your installation",
        content_sections=content,
    )


def admin_booking_notification_template(booking) -> str:
    """Admin notification for a newly created booking"""
    content = f"""
    <mj-text>
      A new TV installation booking has been created.
    </mj-text>

    {_booking_summary(booking)}

    <mj-text>
      Customer: {booking.contact_name} ({booking.contact_email})<br/>
      Location: {booking.address}<br/>
      Total: €{booking.estimated_total:,.2f}
    </mj-text>
    """

    return get_base_template(
        title="New Booking",
        preview_text=f"New booking {booking.qr_code}",
        content_sections=content,
    )


def refund_processed_template(installer_name: str, qr_code: str, amount: float, reason: str) -> str:
    """Installer notice that a lead refund was credited"""
    content = f"""
    <mj-text>
      Hi {installer_name},
    </mj-text>

    <mj-text>
      A refund for lead {qr_code} has been credited to your wallet.
    </mj-text>

    <mj-text align="center" font-size="32px" font-weight="bold" color="{THEME['success']}" padding="20px 0">
      €{amount:,.2f}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Reason: {reason}
    </mj-text>
    """

    return get_base_template(
        title="Lead Refund Processed",
        preview_text=f"€{amount:,.2f} credited to your wallet",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/installer-dashboard",
        cta_label="View Wallet",
    )
