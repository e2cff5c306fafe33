from django.template.loader import render_to_string

from payments.emails import admin_recipients, send_email


def send_enquiry_emails(enquiry):
    ctx = {"enquiry": enquiry}
    if enquiry.email:
        send_email(
            enquiry.email,
            "Your Franchise Enquiry Received",
            render_to_string("emails/enquiry_received_customer.html", ctx),
        )
    admins = admin_recipients()
    if admins:
        send_email(
            admins,
            f"New Enquiry - {enquiry.name or enquiry.enquiry_id}",
            render_to_string("emails/enquiry_admin.html", ctx),
        )
